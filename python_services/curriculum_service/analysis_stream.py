"""
Streaming comprehensive curriculum analysis.

``stream_curriculum_analysis`` runs eight hosted-model stages in a fixed
order and yields an ``AnalysisChunk`` after each one, so a client can render
partial results while the rest is still being computed. Only node
decomposition is fatal; every other stage falls back to a default.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Tuple, TypeVar

from shared.errors import AnalysisFailedError
from shared.llm_client import NO_PROVIDERS_MESSAGE, UnifiedAIService
from shared.models import (
    AnalysisChunk,
    AnalysisChunkType,
    AssessmentRecommendation,
    ComplexityAnalysis,
    CurriculumAnalysis,
    CurriculumGap,
    CurriculumNode,
    DifferentiationSuggestion,
    LearningPath,
    Prerequisite,
)
from shared import prompt_templates as prompts

from .standards import dedupe_standards, fetch_standards

logger = logging.getLogger(__name__)

T = TypeVar("T")

MINUTES_PER_NODE = 45


def format_duration(total_minutes: int) -> str:
    hours, minutes = divmod(total_minutes, 60)
    return f"{hours}h {minutes}m" if hours else f"{minutes}m"


def _progress(value: int, message: str) -> AnalysisChunk:
    return AnalysisChunk(type=AnalysisChunkType.PROGRESS, progress=value, message=message)


def _wire(items) -> list:
    return [item.to_wire() for item in items]


async def _fail_soft(stage: str, call: Callable[[], Awaitable[T]], default: T) -> T:
    try:
        return await call()
    except Exception as e:
        logger.warning("%s failed, using default: %s", stage, e)
        return default


def _sequential_path(nodes: List[CurriculumNode]) -> LearningPath:
    return LearningPath(recommended_order=[n.id for n in nodes], rationale="Sequential order")


def _map_path_to_ids(path: LearningPath, nodes: List[CurriculumNode]) -> LearningPath:
    """The model answers with titles; translate every known title back to a node id."""
    lookup = {}
    for node in nodes:
        lookup[node.title] = node.id
        lookup[node.id] = node.id
    return path.model_copy(
        update={"recommended_order": [lookup.get(entry, entry) for entry in path.recommended_order]}
    )


def _default_node_ids(items: list, nodes: List[CurriculumNode]) -> list:
    first_id = nodes[0].id if nodes else ""
    return [item if item.node_id else item.model_copy(update={"node_id": first_id}) for item in items]


async def stream_curriculum_analysis(
    ai: UnifiedAIService,
    raw_text: str,
    grade_level: str,
    standards_framework: str,
) -> AsyncIterator[AnalysisChunk]:
    """Yield progress and result chunks, ending with ``complete`` or ``error``."""
    analysis = CurriculumAnalysis()

    if not ai.get_available_providers():
        yield AnalysisChunk(type=AnalysisChunkType.ERROR, message=NO_PROVIDERS_MESSAGE)
        return

    try:
        # 1. Nodes (fatal on failure)
        yield _progress(10, "Analyzing curriculum structure...")
        nodes = await ai.analyze_curriculum(raw_text, grade_level, standards_framework)
        analysis.nodes = nodes
        yield AnalysisChunk(
            type=AnalysisChunkType.NODES,
            data=_wire(nodes),
            progress=20,
            message=f"Identified {len(nodes)} instructional nodes",
        )

        # 2. Gaps
        yield _progress(30, "Identifying curriculum gaps...")
        analysis.gaps = await _fail_soft(
            "Gap analysis",
            lambda: ai.generate_json(
                prompts.gaps_prompt(nodes, grade_level, standards_framework),
                List[CurriculumGap],
                operation="gap analysis",
            ),
            [],
        )
        yield AnalysisChunk(
            type=AnalysisChunkType.GAPS,
            data=_wire(analysis.gaps),
            progress=40,
            message=f"Found {len(analysis.gaps)} potential gaps",
        )

        # 3. Prerequisites
        yield _progress(50, "Analyzing prerequisites...")
        analysis.prerequisites = await _fail_soft(
            "Prerequisites analysis",
            lambda: ai.generate_json(
                prompts.prerequisites_prompt(nodes, grade_level),
                List[Prerequisite],
                operation="prerequisites analysis",
            ),
            [],
        )
        yield AnalysisChunk(
            type=AnalysisChunkType.PREREQUISITES,
            data=_wire(analysis.prerequisites),
            progress=60,
            message=f"Identified {len(analysis.prerequisites)} prerequisite concepts",
        )

        # 4. Learning path
        yield _progress(65, "Optimizing learning path...")
        path = await _fail_soft(
            "Learning path analysis",
            lambda: ai.generate_json(
                prompts.learning_path_prompt(nodes), LearningPath, operation="learning path analysis"
            ),
            None,
        )
        analysis.learning_path = _map_path_to_ids(path, nodes) if path else _sequential_path(nodes)
        yield AnalysisChunk(
            type=AnalysisChunkType.LEARNING_PATH,
            data=analysis.learning_path.to_wire(),
            progress=70,
            message="Learning path optimized",
        )

        # 5. Assessments
        yield _progress(75, "Generating assessment recommendations...")
        assessments = await _fail_soft(
            "Assessment analysis",
            lambda: ai.generate_json(
                prompts.assessments_prompt(nodes, grade_level),
                List[AssessmentRecommendation],
                operation="assessment analysis",
            ),
            [],
        )
        analysis.assessment_recommendations = _default_node_ids(assessments, nodes)
        yield AnalysisChunk(
            type=AnalysisChunkType.ASSESSMENTS,
            data=_wire(analysis.assessment_recommendations),
            progress=80,
            message=f"Created {len(assessments)} assessment recommendations",
        )

        # 6. Differentiation
        yield _progress(85, "Analyzing differentiation strategies...")
        suggestions = await _fail_soft(
            "Differentiation analysis",
            lambda: ai.generate_json(
                prompts.differentiation_prompt(nodes),
                List[DifferentiationSuggestion],
                operation="differentiation analysis",
            ),
            [],
        )
        analysis.differentiation_suggestions = _default_node_ids(suggestions, nodes)
        yield AnalysisChunk(
            type=AnalysisChunkType.DIFFERENTIATION,
            data=_wire(analysis.differentiation_suggestions),
            progress=90,
            message="Differentiation strategies ready",
        )

        # 7. Standards, one lookup per node in parallel
        yield _progress(92, "Aligning with educational standards...")
        try:
            groups = await asyncio.gather(
                *(
                    fetch_standards(
                        ai, node.title, node.description, node.learning_objectives,
                        grade_level, standards_framework,
                    )
                    for node in nodes
                )
            )
            analysis.standards_alignment = dedupe_standards(list(groups))
            standards_message = f"Aligned with {len(analysis.standards_alignment)} standards"
        except Exception as e:
            logger.warning("Standards alignment failed: %s", e)
            analysis.standards_alignment = []
            standards_message = "Standards alignment skipped"
        yield AnalysisChunk(
            type=AnalysisChunkType.STANDARDS,
            data=_wire(analysis.standards_alignment),
            progress=95,
            message=standards_message,
        )

        # 8. Complexity
        yield _progress(97, "Analyzing complexity and difficulty...")
        analysis.complexity_analysis = await _fail_soft(
            "Complexity analysis",
            lambda: ai.generate_json(
                prompts.complexity_prompt(nodes, grade_level),
                ComplexityAnalysis,
                operation="complexity analysis",
            ),
            ComplexityAnalysis(),
        )
        analysis.estimated_total_duration = format_duration(len(nodes) * MINUTES_PER_NODE)
        yield AnalysisChunk(
            type=AnalysisChunkType.COMPLEXITY,
            data=analysis.complexity_analysis.to_wire(),
            progress=99,
            message="Complexity analysis complete",
        )

        yield AnalysisChunk(
            type=AnalysisChunkType.COMPLETE,
            data=analysis.to_wire(),
            progress=100,
            message="Analysis complete!",
        )
    except Exception as e:
        logger.error("Streaming analysis error: %s", e)
        yield AnalysisChunk(
            type=AnalysisChunkType.ERROR,
            message=str(e) or "Analysis failed",
            data=analysis.to_wire(),
        )


_CHUNK_FIELDS = {
    AnalysisChunkType.NODES: "nodes",
    AnalysisChunkType.GAPS: "gaps",
    AnalysisChunkType.PREREQUISITES: "prerequisites",
    AnalysisChunkType.LEARNING_PATH: "learning_path",
    AnalysisChunkType.ASSESSMENTS: "assessment_recommendations",
    AnalysisChunkType.DIFFERENTIATION: "differentiation_suggestions",
    AnalysisChunkType.STANDARDS: "standards_alignment",
    AnalysisChunkType.COMPLEXITY: "complexity_analysis",
}


async def collect_analysis(
    stream: AsyncIterator[AnalysisChunk],
    cancel_event: Optional[asyncio.Event] = None,
    on_chunk: Optional[Callable[[AnalysisChunk], None]] = None,
) -> Tuple[CurriculumAnalysis, Optional[AnalysisChunk]]:
    """
    Consume an analysis stream and rebuild the partial result.

    Setting ``cancel_event`` stops consumption before the next chunk is
    handled. Returns the analysis and the terminal chunk (``None`` when
    cancelled or the stream ended early).
    """
    analysis = CurriculumAnalysis()
    terminal: Optional[AnalysisChunk] = None
    try:
        async for chunk in stream:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Analysis consumer cancelled")
                break
            if on_chunk is not None:
                on_chunk(chunk)
            if chunk.type == AnalysisChunkType.COMPLETE:
                analysis = CurriculumAnalysis.model_validate(chunk.data)
                terminal = chunk
                break
            if chunk.type == AnalysisChunkType.ERROR:
                if chunk.data:
                    analysis = CurriculumAnalysis.model_validate(chunk.data)
                terminal = chunk
                break
            field = _CHUNK_FIELDS.get(chunk.type)
            if field is not None:
                partial = CurriculumAnalysis.model_validate({field: chunk.data})
                setattr(analysis, field, getattr(partial, field))
    finally:
        aclose = getattr(stream, "aclose", None)
        if aclose is not None:
            await aclose()
    return analysis, terminal


async def analyze_curriculum_comprehensive(
    ai: UnifiedAIService,
    raw_text: str,
    grade_level: str,
    standards_framework: str,
) -> CurriculumAnalysis:
    """Run the full analysis and return it, raising if the stream ends in error."""
    analysis, terminal = await collect_analysis(
        stream_curriculum_analysis(ai, raw_text, grade_level, standards_framework)
    )
    if terminal is None or terminal.type == AnalysisChunkType.ERROR:
        message = terminal.message if terminal else "Analysis ended before completion"
        raise AnalysisFailedError(message or "Analysis failed", partial=analysis)
    return analysis
