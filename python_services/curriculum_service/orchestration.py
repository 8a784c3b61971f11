"""
Generation orchestration pipeline.

Stages run in order: preview, condensation, inspiration, visuals, main
generation, audit. Main generation is the only fatal stage. Every other stage reports
its outcome in ``GenerationResult.stages`` and degrades instead of failing
the request.
"""

from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable, List, Optional, Tuple, TypeVar

from shared.errors import ProviderNotConfiguredError
from shared.llm_client import UnifiedAIService
from shared.models import (
    AestheticStyle,
    AuditResult,
    BloomLevel,
    Branding,
    CurriculumNode,
    Differentiation,
    EducationalStandard,
    GenerationMetadata,
    GenerationOptions,
    GenerationResult,
    InspirationDocument,
    OutputType,
    StageReport,
    StageStatus,
)

from .preview import generate_quick_preview
from .safety_audit import audit_suite
from .summarization import condense_curriculum

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _run_stage(
    name: str,
    enabled: bool,
    call: Callable[[], Awaitable[Tuple[T, str]]],
    stages: List[StageReport],
    models_used: List[str],
) -> Tuple[Optional[T], Optional[float]]:
    """Run one optional stage, record its report and return (result, seconds)."""
    if not enabled:
        stages.append(StageReport(stage=name, status=StageStatus.SKIPPED))
        return None, None

    started = time.perf_counter()
    try:
        result, model = await call()
    except ProviderNotConfiguredError as e:
        elapsed = time.perf_counter() - started
        logger.info("%s skipped: %s", name, e)
        stages.append(StageReport(stage=name, status=StageStatus.SKIPPED, error=str(e), duration_sec=elapsed))
        return None, elapsed
    except Exception as e:
        elapsed = time.perf_counter() - started
        logger.warning("%s failed, continuing without it: %s", name, e)
        stages.append(StageReport(stage=name, status=StageStatus.DEGRADED, error=str(e), duration_sec=elapsed))
        return None, elapsed

    elapsed = time.perf_counter() - started
    stages.append(StageReport(stage=name, status=StageStatus.OK, duration_sec=elapsed))
    models_used.append(f"{model} ({name})")
    return result, elapsed


async def generate_with_orchestration(
    ai: UnifiedAIService,
    node: CurriculumNode,
    output_type: OutputType,
    bloom_level: BloomLevel,
    differentiation: Differentiation,
    aesthetic: AestheticStyle,
    branding: Optional[Branding] = None,
    page_count: int = 1,
    grade: Optional[str] = None,
    standards: Optional[List[EducationalStandard]] = None,
    options: Optional[GenerationOptions] = None,
    long_document_text: Optional[str] = None,
    inspiration: Optional[InspirationDocument] = None,
) -> GenerationResult:
    options = options or GenerationOptions()
    stages: List[StageReport] = []
    models_used: List[str] = []
    started = time.perf_counter()

    preview, preview_time = await _run_stage(
        "preview",
        options.enable_preview,
        lambda: generate_quick_preview(ai, node, output_type, bloom_level, differentiation),
        stages,
        models_used,
    )

    condensed, _ = await _run_stage(
        "condensation",
        options.enable_condensation and bool(long_document_text),
        lambda: condense_curriculum(ai, long_document_text or ""),
        stages,
        models_used,
    )

    inspired, _ = await _run_stage(
        "inspiration",
        options.enable_inspiration and inspiration is not None,
        lambda: ai.analyze_inspiration(
            inspiration.base64_data,
            inspiration.mime_type,
            inspiration.copy_layout,
            inspiration.copy_design,
            preferred_provider=options.preferred_provider,
        ),
        stages,
        models_used,
    )

    doodle, _ = await _run_stage(
        "visuals",
        options.enable_visuals,
        lambda: ai.generate_doodle(node.title),
        stages,
        models_used,
    )

    # Main generation propagates its errors
    main_started = time.perf_counter()
    suite = await ai.generate_suite(
        node,
        output_type,
        bloom_level,
        differentiation,
        aesthetic,
        branding=branding,
        page_count=page_count,
        grade=grade,
        standards=standards,
        preferred_provider=options.preferred_provider,
        doodle_base64=doodle or "",
        source_context=condensed.as_context() if condensed else None,
        style_guidance=inspired.as_guidance() if inspired else None,
    )
    stages.append(
        StageReport(stage="generation", status=StageStatus.OK, duration_sec=time.perf_counter() - main_started)
    )
    if suite.generated_by:
        models_used.append(f"{suite.generated_by} (generation)")

    audit, audit_time = await _run_stage(
        "audit",
        options.enable_audit,
        lambda: audit_suite(ai, suite, grade),
        stages,
        models_used,
    )
    if options.enable_audit and audit is None:
        audit = AuditResult(safe=True)

    metadata = GenerationMetadata(
        models_used=models_used,
        generation_time_sec=round(time.perf_counter() - started, 3),
        preview_time_sec=round(preview_time, 3) if preview_time is not None else None,
        audit_time_sec=round(audit_time, 3) if audit_time is not None else None,
    )
    logger.info("Orchestrated generation finished in %.2fs using %s", metadata.generation_time_sec, models_used)
    return GenerationResult(suite=suite, preview=preview, audit=audit, metadata=metadata, stages=stages)
