"""
Prompt templates for curriculum analysis and instructional suite generation.

Every template returns plain text. Providers get the same prompt; only the
transport differs.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from .models import CurriculumNode, EducationalStandard, OutputType, StandardsFramework, SuiteRequest
from .suite_utils import content_mix, sections_per_page

JSON_ONLY_SYSTEM = (
    "You are an expert instructional designer and a strict JSON generator. "
    "Return ONLY valid JSON. Do not include commentary or markdown."
)

NODE_SHAPE = (
    '[{"id": "node-1", "title": "string", "description": "string", '
    '"learningObjectives": ["string"], "suggestedDuration": "string"}]'
)

SECTION_SHAPE = """{
  "title": "string",
  "doodlePrompt": "short prompt for a line-art doodle about the topic",
  "sections": [
    {
      "id": "s1",
      "title": "string",
      "type": "text | question | instruction | diagram_placeholder | matching",
      "content": "string",
      "points": 2,
      "options": ["string"],
      "correctAnswer": "index | text | [indexes]",
      "explanation": "string"
    }
  ]
}"""

FRAMEWORK_CONTEXTS: Dict[StandardsFramework, str] = {
    StandardsFramework.COMMON_CORE_MATH: (
        "Common Core State Standards for Mathematics:\n"
        "- Use format: CCSS.MATH.CONTENT.[GRADE].[DOMAIN].[CLUSTER].[STANDARD]\n"
        "- Domains include Counting & Cardinality, Operations & Algebraic Thinking, "
        "Number & Operations, Measurement & Data, Geometry"
    ),
    StandardsFramework.COMMON_CORE_ELA: (
        "Common Core State Standards for English Language Arts:\n"
        "- Use format: CCSS.ELA-LITERACY.[STRAND].[GRADE].[STANDARD]\n"
        "- Strands include Reading, Writing, Speaking & Listening, Language"
    ),
    StandardsFramework.NEXT_GEN_SCIENCE: (
        "Next Generation Science Standards (NGSS):\n"
        "- Use Performance Expectation codes such as 3-LS1-1 or MS-PS2-3"
    ),
    StandardsFramework.TEKS: (
        "Texas Essential Knowledge and Skills (TEKS):\n"
        "- Use format: [SUBJECT].[GRADE].[STRAND].[KNOWLEDGE/SKILL NUMBER]"
    ),
    StandardsFramework.FLORIDA_BEST: (
        "Florida B.E.S.T. Standards:\n"
        "- Use codes such as MA.3.FR.1.1 or ELA.4.R.1.2"
    ),
    StandardsFramework.OTHER: (
        "General educational standards:\n"
        "- Use the code format most commonly used for this subject"
    ),
}

WORKSHEET_INSTRUCTIONS = """WORKSHEET REQUIREMENTS:
1. Open with a short hook explaining why the lesson matters and what it builds toward.
2. Follow "I Do, We Do, You Do": 1-2 fully worked examples, then guided practice with
   sentence frames, then independent practice.
3. Diagram instructions are complete sentences describing exactly what to draw.
4. Sentence frames ask for reasoning ("because ..., which means ___"), not one-word recall.
5. Multiple choice includes at least one tempting distractor based on a common misconception.
6. Vary question types; do not ask the same kind of question repeatedly.
7. Matching exercises always include both the items and a complete word bank.
8. Mark a challenge extension ("Challenge:") and a support option ("Extra Help:").
9. Include one boxed "Golden Rule" statement for the key concept.
10. No truncated sentences. Every section must be usable by students as written."""

GUIDED_NOTES_INSTRUCTIONS = """GUIDED NOTES REQUIREMENTS:
1. Open with a hook that frames the future payoff of the concept.
2. Follow "I Do, We Do, You Do" with headers such as "Vocabulary", "Why This Works", "Try It".
3. Provide 1-2 fully worked examples before any independent practice.
4. Use fill-in sentence frames that force an explanation, and think-aloud prompts.
5. Include labelled diagram placeholders with explicit directions outside the drawing box.
6. Mark a challenge extension ("Preview of What's Next") and a support option ("Extra Help:").
7. Keep information chunked with generous white space for ADHD and dyslexia-friendly reading."""

ANSWER_RULES = """ANSWERS ARE REQUIRED. Every question and matching section MUST include "correctAnswer":
- Multiple choice: the NUMBER index of the correct option (0, 1, 2, ...)
- Short answer: a STRING with the expected answer
- Matching: an ARRAY of option indexes, one per item line in "content"
- Diagram: a short description of what should be drawn
Use plain text only, with no HTML entities."""

JSON_RETRY_MESSAGE = "The previous response was invalid JSON. Please try again and return ONLY valid JSON."


def grade_context(grade: Optional[str]) -> str:
    return f"\n\nGrade Level Context: {grade}" if grade else ""


def framework_context(framework: Optional[str]) -> str:
    if not framework:
        return ""
    return (
        f"\n\nEducational Standards Framework: {framework}. "
        "Consider relevant standards when decomposing the curriculum."
    )


def node_decomposition_prompt(text: str, grade: Optional[str], framework: Optional[str], max_length: int = 15000) -> str:
    return (
        "Analyze this curriculum/syllabus and decompose it into a logical sequence of "
        "instructional nodes. Each node should represent a discrete lesson or module."
        f"{grade_context(grade)}{framework_context(framework)}\n\n"
        f"Return a JSON array shaped like: {NODE_SHAPE}\n\n"
        f"Text: {text[:max_length]}"
    )


def document_decomposition_prompt(grade: Optional[str], framework: Optional[str]) -> str:
    return (
        "Analyze this document (syllabus, textbook, or curriculum) and decompose it into a "
        "logical sequence of instructional nodes. Each node should represent a discrete "
        f"lesson or module.{grade_context(grade)}{framework_context(framework)}\n\n"
        f"Return a JSON array shaped like: {NODE_SHAPE}"
    )


def format_standards(standards: Optional[Iterable[EducationalStandard]]) -> str:
    lines = [f"    * {s.code}: {s.description}" for s in standards or []]
    if not lines:
        return ""
    return (
        "\n  - Aligned Standards:\n" + "\n".join(lines)
        + "\n  Ensure the content directly addresses these standards."
    )


def suite_generation_prompt(node: CurriculumNode, request: SuiteRequest) -> str:
    per_page = sections_per_page(request.page_count)
    total = request.page_count * per_page
    instructions = (
        GUIDED_NOTES_INSTRUCTIONS if request.output_type == OutputType.GUIDED_NOTES else WORKSHEET_INSTRUCTIONS
    )
    mix = "\n".join(f"  - {label}: at least {count}" for label, count in content_mix(total).items())
    grade_text = f"\n  - Grade Level: {request.grade_level}" if request.grade_level else ""
    source = ""
    if request.source_context:
        source = f"\n\nSOURCE MATERIAL SUMMARY (base the content on this):\n{request.source_context}"
    if request.style_guidance:
        source += f"\n\nSTYLE REFERENCE (follow this layout and design where it suits the content):\n{request.style_guidance}"
    plural = "s" if request.page_count > 1 else ""

    return f"""Act as a world-class Instructional Designer. Generate a classroom-ready {request.output_type.value} for the topic: "{node.title}".

  Details:
  - Target Bloom's Taxonomy Level: {request.bloom_level.value}
  - Differentiation Strategy: {request.differentiation.value}{grade_text}
  - Learning Objectives: {', '.join(node.learning_objectives)}
  - Topic Description: {node.description}
  - Target Pages: {request.page_count} page{plural} (generate AT LEAST {total} sections, about {per_page} per page){format_standards(request.standards)}{source}

{instructions}

CONTENT MIX (minimum counts):
{mix}

For {request.differentiation.value}, ensure:
  - ADHD: clear headers, chunked information, visual cues, generous white space.
  - ESL: simplified phrasing, vocabulary focus, sentence frames.
  - Gifted: challenge extensions, open-ended inquiry, synthesis tasks.

{ANSWER_RULES}

Return a JSON object shaped like:
{SECTION_SHAPE}"""


def rubric_prompt(node: CurriculumNode, output_type: str, bloom_level: str, sections_summary: str,
                  grade: Optional[str], standards: Optional[List[EducationalStandard]]) -> str:
    standards_text = ""
    if standards:
        standards_text = "\n\nAligned Standards:\n" + "\n".join(f"- {s.code}: {s.description}" for s in standards)
    return f"""You are an expert educator creating a grading rubric for student work on this {output_type}.

Topic: {node.title}
Learning Objectives: {', '.join(node.learning_objectives)}
Grade Level: {grade or 'General'}
Bloom's Taxonomy Level: {bloom_level}{standards_text}

Content Summary:
{sections_summary}

Create a rubric with 3-5 criteria aligned with the learning objectives. Each criterion has four
performance levels: excellent (4), good (3), satisfactory (2), needsImprovement (1).

Return JSON: {{"criteria": [{{"criterion": "", "excellent": "", "good": "", "satisfactory": "", "needsImprovement": "", "points": 4}}], "totalPoints": 0, "scale": "4-point scale"}}"""


def doodle_prompt(topic: str) -> str:
    return (
        "Create a single, clean, minimalistic black and white line-art doodle or icon "
        f"representing: {topic}. The background must be pure white. No shading, just "
        "outlines. Suitable for a professional academic worksheet."
    )


def _node_lines(nodes: List[CurriculumNode], objectives: bool = False) -> str:
    lines = []
    for i, node in enumerate(nodes, start=1):
        line = f"{i}. [{node.id}] {node.title}: {node.description}"
        if objectives:
            line += f"\n   Objectives: {', '.join(node.learning_objectives)}"
        lines.append(line)
    return "\n".join(lines)


def gaps_prompt(nodes: List[CurriculumNode], grade: str, framework: str) -> str:
    return f"""Analyze this curriculum and identify gaps - missing concepts or skills that should be included for a complete {grade} curriculum aligned with {framework}.

Current nodes:
{_node_lines(nodes)}

Return a JSON array: [{{"missingConcept": "", "importance": "low|medium|high", "suggestedNode": "", "reason": ""}}]"""


def prerequisites_prompt(nodes: List[CurriculumNode], grade: str) -> str:
    return f"""Analyze these curriculum nodes and identify prerequisite knowledge/skills needed for each.

Nodes:
{_node_lines(nodes, objectives=True)}

Grade Level: {grade}

Return a JSON array: [{{"concept": "", "requiredFor": ["node id"], "masteryLevel": "", "assessmentSuggestions": [""]}}]"""


def learning_path_prompt(nodes: List[CurriculumNode]) -> str:
    return f"""Analyze these curriculum nodes and recommend the optimal learning path sequence.

Nodes:
{_node_lines(nodes)}

Return JSON: {{"recommendedOrder": ["node title"], "rationale": "", "alternativePaths": [["node title"]]}}"""


def assessments_prompt(nodes: List[CurriculumNode], grade: str) -> str:
    return f"""Recommend assessment strategies for these curriculum nodes.

Nodes:
{_node_lines(nodes, objectives=True)}

Grade Level: {grade}

Return a JSON array: [{{"nodeId": "", "assessmentType": "formative|summative|diagnostic|self-assessment", "timing": "", "format": [""], "rationale": ""}}]"""


def differentiation_prompt(nodes: List[CurriculumNode]) -> str:
    return f"""Provide differentiation strategies for these curriculum nodes for ADHD, Gifted, ESL, and struggling learners.

Nodes:
{_node_lines(nodes)}

Return a JSON array: [{{"nodeId": "", "forADHD": [""], "forGifted": [""], "forESL": [""], "forStruggling": [""]}}]"""


def complexity_prompt(nodes: List[CurriculumNode], grade: str) -> str:
    return f"""Analyze the complexity and difficulty progression of this curriculum.

Nodes:
{_node_lines(nodes, objectives=True)}

Grade Level: {grade}

Return JSON: {{"averageBloomLevel": "", "difficultyProgression": "gradual|steep|inconsistent", "recommendations": [""]}}"""


def standards_prompt(topic: str, description: str, objectives: List[str], grade: str, framework: str) -> str:
    try:
        context = FRAMEWORK_CONTEXTS.get(StandardsFramework(framework), "")
    except ValueError:
        context = ""
    return f"""You are an expert in educational standards alignment. Based on the following educational content, identify the most relevant {framework} standards for {grade}.

Topic: {topic}
Description: {description}
Learning Objectives: {'; '.join(objectives)}

{context}

For each standard provide the official code, the full description, and the subject area.
Return a JSON array: [{{"code": "", "description": "", "subject": ""}}]"""


def preview_prompt(node: CurriculumNode, output_type: str, bloom_level: str, differentiation: str) -> str:
    return f"""Generate a quick preview for a {output_type} on: "{node.title}"

Context:
- Learning Objectives: {', '.join(node.learning_objectives)}
- Bloom Level: {bloom_level}
- Differentiation: {differentiation}

Return JSON:
{{"title": "", "overview": "2-3 sentences", "estimatedSections": 8, "sampleSections": [{{"type": "warmup|practice|assessment", "title": "", "preview": ""}}]}}"""


INSPIRATION_SHAPE = (
    '{"layout": {"structure": "", "sections": [""], "spacing": "", "orientation": ""}, '
    '"design": {"colors": [""], "fonts": "", "styling": "", "visualElements": [""]}, '
    '"recommendations": ""}'
)


def inspiration_prompt(copy_layout: bool, copy_design: bool) -> str:
    asks = []
    if copy_layout:
        asks.append(
            "- Layout structure: page layout, section organization, spacing, margins, text flow, orientation\n"
            "- Section breakdown: every section and how it is arranged"
        )
    if copy_design:
        asks.append(
            "- Design elements: color palette, font styles, visual styling, borders, backgrounds\n"
            "- Visual elements: icons, images, diagrams, decorative elements"
        )
    if copy_layout and copy_design:
        focus, target = "Extract both layout AND design information.", "layout and design"
    elif copy_layout:
        focus, target = "Focus ONLY on layout structure and organization.", "layout"
    else:
        focus, target = "Focus ONLY on design elements and styling.", "design"
    return (
        "Analyze this educational material (PDF/photo) and extract:\n"
        + "\n".join(asks)
        + f"\n\n{focus}\n\nProvide detailed, actionable information that can be used to replicate "
        f"the {target} of this document.\n\nReturn JSON shaped like: {INSPIRATION_SHAPE}"
    )


SUMMARIZATION_SYSTEM = (
    "You are a conservative summarizer and pedagogy assistant. Condense the input document "
    "into sections covering the learning goal, key concepts, activities, assessment ideas, and "
    "differentiation. If a fact is not stated, mark it \"not stated\". Return ONLY JSON."
)


def summarization_prompt(text: str, num_sections: int = 5, max_length: int = 100000) -> str:
    return (
        f"Summarize the following curriculum text into {num_sections} sections. "
        "Ensure each summary is 60 words or fewer.\n"
        'Return JSON: {"sections": [{"title": "", "summary": "", "keyPoints": [""], "activities": [""]}]}\n\n'
        f"{text[:max_length]}"
    )


AUDIT_SYSTEM = (
    "You are a safety & pedagogy auditor. Evaluate content for accuracy, safety, bias, "
    "age-appropriateness for the target grade, and pedagogical clarity. Return JSON: "
    '{"issues": [{"type": "", "severity": "low|medium|high", "reason": ""}], '
    '"recommendations": [{"change": "", "explanation": ""}], "safe": true}'
)


def audit_prompt(content: str, grade: Optional[str]) -> str:
    return (
        f"Audit the following teacher-facing educational content. Target grade: {grade or 'Unknown'}.\n\n"
        f"{content}\n\nReturn only valid JSON with the audit results."
    )


def json_retry_prompt(original_prompt: str, error: str) -> str:
    return (
        f"{JSON_RETRY_MESSAGE}\n\nValidation error: {error[:500]}\n\n"
        f"Original request: {original_prompt}"
    )
