"""
Shared Pydantic models for the curriculum services.

Wire format is camelCase; attributes are snake_case. Both spellings are
accepted when validating.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# Enums
class BloomLevel(str, Enum):
    """Cognitive rigor targets."""
    RECALL = "Basic - Recall facts, define terms, identify concepts"
    APPLICATION = "Intermediate - Solve problems, apply knowledge, use concepts"
    EVALUATION = "Advanced - Judge quality, compare ideas, critique arguments"
    CREATION = "Expert - Design solutions, create projects, build new work"


class Differentiation(str, Enum):
    GENERAL = "General"
    ADHD = "ADHD-Friendly"
    GIFTED = "Gifted/Advanced"
    ESL = "ESL/ELL"


class AestheticStyle(str, Enum):
    CLASSIC = "Classic Handwriting"
    CREATIVE = "Creative Script"
    MODERN = "Modern Professional"
    ACADEMIC = "Academic Serifs"


class OutputType(str, Enum):
    WORKSHEET = "Worksheet"
    HOMEWORK = "Homework"
    QUIZ = "Formative Quiz"
    EXAM = "Summative Exam"
    GUIDED_NOTES = "Guided Notes"


class GradeLevel(str, Enum):
    K = "Kindergarten"
    GRADE_1 = "1st Grade"
    GRADE_2 = "2nd Grade"
    GRADE_3 = "3rd Grade"
    GRADE_4 = "4th Grade"
    GRADE_5 = "5th Grade"
    GRADE_6 = "6th Grade"
    GRADE_7 = "7th Grade"
    GRADE_8 = "8th Grade"
    GRADE_9 = "9th Grade"
    GRADE_10 = "10th Grade"
    GRADE_11 = "11th Grade"
    GRADE_12 = "12th Grade"
    UNIVERSITY = "University"


class StandardsFramework(str, Enum):
    COMMON_CORE_MATH = "Common Core Math"
    COMMON_CORE_ELA = "Common Core ELA"
    NEXT_GEN_SCIENCE = "Next Generation Science Standards"
    TEKS = "Texas Essential Knowledge and Skills"
    FLORIDA_BEST = "Florida B.E.S.T. Standards"
    OTHER = "Other/General"


class AIProvider(str, Enum):
    """Supported hosted-model providers, in default fallback order."""
    GEMINI = "gemini"
    OPENAI = "openai"
    CLAUDE = "claude"


# Curriculum models
class CurriculumNode(CamelModel):
    """A discrete lesson or module extracted from a curriculum."""
    id: str
    title: str
    description: str = ""
    learning_objectives: List[str] = Field(default_factory=list)
    suggested_duration: str = ""


class EducationalStandard(CamelModel):
    code: str
    description: str = ""
    framework: Optional[str] = None
    subject: Optional[str] = None


class CurriculumGap(CamelModel):
    missing_concept: str
    importance: str = "medium"
    suggested_node: str = ""
    reason: str = ""


class Prerequisite(CamelModel):
    concept: str
    required_for: List[str] = Field(default_factory=list)
    mastery_level: str = ""
    assessment_suggestions: List[str] = Field(default_factory=list)


class LearningPath(CamelModel):
    recommended_order: List[str] = Field(default_factory=list)
    rationale: str = ""
    alternative_paths: Optional[List[List[str]]] = None


class AssessmentRecommendation(CamelModel):
    node_id: str = ""
    assessment_type: str = "formative"
    timing: str = ""
    format: List[str] = Field(default_factory=list)
    rationale: str = ""


class DifferentiationSuggestion(CamelModel):
    node_id: str = ""
    for_adhd: List[str] = Field(default_factory=list, alias="forADHD")
    for_gifted: List[str] = Field(default_factory=list)
    for_esl: List[str] = Field(default_factory=list, alias="forESL")
    for_struggling: List[str] = Field(default_factory=list)


class ComplexityAnalysis(CamelModel):
    average_bloom_level: str = "Unknown"
    difficulty_progression: str = "gradual"
    recommendations: List[str] = Field(default_factory=list)


class CurriculumAnalysis(CamelModel):
    """Aggregate result of the comprehensive analysis. Never absent, only partial."""
    nodes: List[CurriculumNode] = Field(default_factory=list)
    gaps: List[CurriculumGap] = Field(default_factory=list)
    prerequisites: List[Prerequisite] = Field(default_factory=list)
    learning_path: LearningPath = Field(default_factory=LearningPath)
    assessment_recommendations: List[AssessmentRecommendation] = Field(default_factory=list)
    differentiation_suggestions: List[DifferentiationSuggestion] = Field(default_factory=list)
    standards_alignment: List[EducationalStandard] = Field(default_factory=list)
    estimated_total_duration: str = ""
    complexity_analysis: ComplexityAnalysis = Field(default_factory=ComplexityAnalysis)


class AnalysisChunkType(str, Enum):
    PROGRESS = "progress"
    NODES = "nodes"
    GAPS = "gaps"
    PREREQUISITES = "prerequisites"
    LEARNING_PATH = "learningPath"
    ASSESSMENTS = "assessments"
    DIFFERENTIATION = "differentiation"
    STANDARDS = "standards"
    COMPLEXITY = "complexity"
    COMPLETE = "complete"
    ERROR = "error"


class AnalysisChunk(CamelModel):
    """One incremental event of the streamed analysis."""
    type: AnalysisChunkType
    data: Optional[Any] = None
    progress: Optional[int] = None
    message: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.type in (AnalysisChunkType.COMPLETE, AnalysisChunkType.ERROR)


# Document sections: tagged union keyed on ``type``
class _SectionBase(CamelModel):
    id: str
    title: str = ""
    content: str = ""
    points: Optional[int] = None
    options: Optional[List[str]] = None
    explanation: Optional[str] = None
    image_base64: Optional[str] = None
    page_number: Optional[int] = None
    order: Optional[int] = None


class TextSection(_SectionBase):
    type: Literal["text"] = "text"
    correct_answer: Optional[str] = None


class InstructionSection(_SectionBase):
    type: Literal["instruction"] = "instruction"
    correct_answer: Optional[str] = None


class DiagramSection(_SectionBase):
    """Space for the student to draw. The answer describes the expected drawing."""
    type: Literal["diagram_placeholder"] = "diagram_placeholder"
    correct_answer: Optional[str] = None


class QuestionSection(_SectionBase):
    """Multiple choice (index answer) or short answer (string answer)."""
    type: Literal["question"] = "question"
    correct_answer: Optional[Union[int, str]] = None

    @model_validator(mode="after")
    def _check_answer(self) -> "QuestionSection":
        answer = self.correct_answer
        if not self.options or answer is None:
            return self
        if isinstance(answer, str):
            stripped = answer.strip()
            if stripped.isdigit():
                answer = int(stripped)
            elif stripped in self.options:
                answer = self.options.index(stripped)
            elif len(stripped) == 1 and stripped.isalpha() and ord(stripped.upper()) - ord("A") < len(self.options):
                # Letter answers ("B") refer to the lettered options
                answer = ord(stripped.upper()) - ord("A")
            else:
                return self
        if not 0 <= answer < len(self.options):
            raise ValueError(
                f"correctAnswer index {answer} out of range for {len(self.options)} options"
            )
        self.correct_answer = answer
        return self

    @property
    def is_multiple_choice(self) -> bool:
        return bool(self.options)


class MatchingSection(_SectionBase):
    """Items in ``content`` (one per line) matched against ``options``."""
    type: Literal["matching"] = "matching"
    correct_answer: Optional[List[int]] = None

    @model_validator(mode="after")
    def _check_answer(self) -> "MatchingSection":
        if self.correct_answer is None:
            return self
        count = len(self.options or [])
        bad = [i for i in self.correct_answer if not 0 <= i < count]
        if bad:
            raise ValueError(f"matching indexes {bad} out of range for {count} options")
        return self


DocumentSection = Annotated[
    Union[TextSection, InstructionSection, DiagramSection, QuestionSection, MatchingSection],
    Field(discriminator="type"),
]


class Page(CamelModel):
    id: str
    page_number: int
    sections: List[DocumentSection] = Field(default_factory=list)


class RubricCriterion(CamelModel):
    criterion: str
    excellent: str = ""
    good: str = ""
    satisfactory: str = ""
    needs_improvement: str = ""
    points: int = 4


class Rubric(CamelModel):
    criteria: List[RubricCriterion] = Field(default_factory=list)
    total_points: Optional[int] = None
    scale: str = "4-point scale"

    @model_validator(mode="after")
    def _fill_total(self) -> "Rubric":
        if self.total_points is None:
            self.total_points = sum(c.points for c in self.criteria)
        return self


class TeacherKeyEntry(CamelModel):
    section_id: str
    section_title: str
    answer: Union[int, str, List[int]]
    explanation: Optional[str] = None


class Branding(CamelModel):
    institution_name: Optional[str] = None
    instructor_name: Optional[str] = None


class InstructionalSuite(CamelModel):
    """A generated set of printable instructional material for one node."""
    id: str
    node_id: Optional[str] = None
    title: str
    output_type: OutputType
    bloom_level: BloomLevel
    differentiation: Differentiation = Differentiation.GENERAL
    aesthetic: AestheticStyle = AestheticStyle.MODERN
    institution_name: Optional[str] = None
    instructor_name: Optional[str] = None
    sections: List[DocumentSection] = Field(default_factory=list)
    pages: Optional[List[Page]] = None
    page_count: Optional[int] = None
    grade_level: Optional[str] = None
    standards: Optional[List[EducationalStandard]] = None
    rubric: Optional[Rubric] = None
    doodle_prompt: Optional[str] = None
    doodle_base64: Optional[str] = None
    generated_by: Optional[str] = None
    created_at: Optional[datetime] = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def teacher_key(self) -> List[TeacherKeyEntry]:
        from .suite_utils import derive_teacher_key

        return derive_teacher_key(self.sections)

    def resolved_pages(self) -> List[Page]:
        if self.pages:
            return self.pages
        from .suite_utils import paginate_sections

        return paginate_sections(self.sections, self.page_count or 1)


class SuiteRequest(CamelModel):
    """Generation settings passed from the unified service to an adapter."""
    output_type: OutputType
    bloom_level: BloomLevel
    differentiation: Differentiation = Differentiation.GENERAL
    aesthetic: AestheticStyle = AestheticStyle.MODERN
    branding: Branding = Field(default_factory=Branding)
    page_count: int = Field(default=1, ge=1)
    grade_level: Optional[str] = None
    standards: Optional[List[EducationalStandard]] = None
    source_context: Optional[str] = None
    style_guidance: Optional[str] = None


# Orchestration models
class SuitePreview(CamelModel):
    title: str = ""
    overview: str = ""
    estimated_sections: int = 8
    sample_sections: List[Dict[str, Any]] = Field(default_factory=list)


class CondensedSection(CamelModel):
    title: str
    summary: str = ""
    key_points: List[str] = Field(default_factory=list)
    activities: List[str] = Field(default_factory=list)


class CondensedCurriculum(CamelModel):
    sections: List[CondensedSection] = Field(default_factory=list)
    original_length_words: int = 0
    condensed_length_words: int = 0

    def as_context(self) -> str:
        return "\n\n".join(f"{s.title}: {s.summary}" for s in self.sections)


def _as_text(value: Union[str, List[str]]) -> str:
    return ", ".join(value) if isinstance(value, list) else value


class InspirationLayout(CamelModel):
    structure: str = ""
    sections: List[str] = Field(default_factory=list)
    spacing: str = ""
    orientation: str = ""


class InspirationDesign(CamelModel):
    colors: Union[List[str], str] = Field(default_factory=list)
    fonts: str = ""
    styling: str = ""
    visual_elements: Union[List[str], str] = Field(default_factory=list)


class InspirationAnalysis(CamelModel):
    """Layout and design cues read from an example document."""
    layout: Optional[InspirationLayout] = None
    design: Optional[InspirationDesign] = None
    recommendations: str = ""

    def as_guidance(self) -> str:
        lines = []
        if self.layout:
            lines += [
                f"Layout structure: {self.layout.structure}",
                f"Section arrangement: {_as_text(self.layout.sections)}",
                f"Spacing: {self.layout.spacing}",
                f"Orientation: {self.layout.orientation}",
            ]
        if self.design:
            lines += [
                f"Colors: {_as_text(self.design.colors)}",
                f"Fonts: {self.design.fonts}",
                f"Styling: {self.design.styling}",
                f"Visual elements: {_as_text(self.design.visual_elements)}",
            ]
        if self.recommendations:
            lines.append(f"Recommendations: {self.recommendations}")
        # Drop cues the model left empty
        return "\n".join(line for line in lines if not line.endswith(": "))


class InspirationDocument(CamelModel):
    """An example handout whose layout or design the suite should follow."""
    base64_data: str
    mime_type: str
    copy_layout: bool = True
    copy_design: bool = True

    @field_validator("base64_data")
    @classmethod
    def _strip_data_url(cls, value: str) -> str:
        if value.startswith("data:") and "," in value:
            return value.split(",", 1)[1]
        return value


class AuditIssue(CamelModel):
    type: str = "other"
    severity: str = "low"
    reason: str = ""


class AuditRecommendation(CamelModel):
    change: str = ""
    explanation: str = ""


class AuditResult(CamelModel):
    issues: List[AuditIssue] = Field(default_factory=list)
    recommendations: List[AuditRecommendation] = Field(default_factory=list)
    safe: bool = True


class GenerationOptions(CamelModel):
    enable_preview: bool = False
    enable_condensation: bool = False
    enable_audit: bool = False
    enable_visuals: bool = False
    enable_inspiration: bool = False
    preferred_provider: Optional[AIProvider] = None


class StageStatus(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    DEGRADED = "degraded"


class StageReport(CamelModel):
    stage: str
    status: StageStatus
    error: Optional[str] = None
    duration_sec: Optional[float] = None


class GenerationMetadata(CamelModel):
    models_used: List[str] = Field(default_factory=list)
    generation_time_sec: float = 0.0
    preview_time_sec: Optional[float] = None
    audit_time_sec: Optional[float] = None


class GenerationResult(CamelModel):
    suite: InstructionalSuite
    preview: Optional[SuitePreview] = None
    audit: Optional[AuditResult] = None
    metadata: GenerationMetadata = Field(default_factory=GenerationMetadata)
    stages: List[StageReport] = Field(default_factory=list)


class HealthCheck(BaseModel):
    """Health check response model."""
    service: str
    status: str = "healthy"
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    version: str = "0.1.0"
    providers: List[AIProvider] = Field(default_factory=list)


# HTTP request bodies. Required fields are checked by the handlers so the
# error messages match what clients expect.
class AnalyzeCurriculumRequest(CamelModel):
    raw_text: Optional[str] = None
    grade_level: Optional[str] = None
    standards_framework: Optional[str] = None


class ParseDocumentRequest(CamelModel):
    base64_data: Optional[str] = None
    mime_type: Optional[str] = None
    grade_level: Optional[str] = None
    standards_framework: Optional[str] = None


class GammaEnhanceRequest(CamelModel):
    content: Optional[str] = None
    title: Optional[str] = None
    format: str = "presentation"
    options: Dict[str, Any] = Field(default_factory=dict)


class GenerateSuiteRequest(CamelModel):
    node: CurriculumNode
    output_type: OutputType
    bloom_level: BloomLevel
    differentiation: Differentiation = Differentiation.GENERAL
    aesthetic: AestheticStyle = AestheticStyle.MODERN
    branding: Branding = Field(default_factory=Branding)
    page_count: int = Field(default=1, ge=1)
    grade_level: Optional[str] = None
    standards: Optional[List[EducationalStandard]] = None
    options: GenerationOptions = Field(default_factory=GenerationOptions)
    long_document_text: Optional[str] = None
    inspiration: Optional[InspirationDocument] = None
    persist: bool = False


class ExportPdfRequest(CamelModel):
    suite: InstructionalSuite
    include_teacher_key: bool = True
    format: Literal["pdf", "html"] = "pdf"
