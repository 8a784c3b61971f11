"""
Safety and pedagogy audit of a generated suite.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from shared.llm_client import UnifiedAIService
from shared.models import AIProvider, AuditResult, InstructionalSuite
from shared.prompt_templates import AUDIT_SYSTEM, audit_prompt

logger = logging.getLogger(__name__)

CONTENT_PREVIEW_CHARS = 200


def suite_audit_text(suite: InstructionalSuite) -> str:
    """Compact text rendering of a suite for the auditor."""
    lines = [
        f"Title: {suite.title}",
        f"Output Type: {suite.output_type.value}",
        f"Bloom Level: {suite.bloom_level.value}",
        f"Differentiation: {suite.differentiation.value}",
        "",
        "Sections:",
    ]
    for i, section in enumerate(suite.sections, start=1):
        content = section.content
        if len(content) > CONTENT_PREVIEW_CHARS:
            content = content[:CONTENT_PREVIEW_CHARS] + "..."
        lines.append(f"Section {i}: {section.title}")
        lines.append(f"Type: {section.type}")
        lines.append(f"Content: {content}")
        if section.options:
            lines.append(f"Options: {', '.join(section.options)}")
        lines.append("")
    return "\n".join(lines).strip()


async def audit_suite(
    ai: UnifiedAIService,
    suite: InstructionalSuite,
    grade_level: Optional[str] = None,
    preferred_provider: Optional[AIProvider] = AIProvider.CLAUDE,
) -> Tuple[AuditResult, str]:
    """Audit ``suite``; errors propagate so the caller decides how to degrade."""
    return await ai.generate_json_with_model(
        audit_prompt(suite_audit_text(suite), grade_level or suite.grade_level),
        AuditResult,
        system=AUDIT_SYSTEM,
        preferred_provider=preferred_provider,
        temperature=0.1,
        max_tokens=2048,
        operation="safety audit",
    )
