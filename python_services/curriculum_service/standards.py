"""
Educational standards lookup for a single lesson node.
"""

from __future__ import annotations

import logging
from typing import List

from pydantic import BaseModel

from shared.llm_client import UnifiedAIService
from shared.models import EducationalStandard
from shared.prompt_templates import standards_prompt

logger = logging.getLogger(__name__)


class _StandardDraft(BaseModel):
    code: str
    description: str = ""
    subject: str | None = None


async def fetch_standards(
    ai: UnifiedAIService,
    topic: str,
    description: str,
    learning_objectives: List[str],
    grade_level: str,
    framework: str,
) -> List[EducationalStandard]:
    """Standards aligned with the given content. Any failure yields an empty list."""
    prompt = standards_prompt(topic, description, learning_objectives, grade_level, framework)
    try:
        drafts = await ai.generate_json(
            prompt, List[_StandardDraft], fast=True, temperature=0.2, operation="standards lookup"
        )
    except Exception as e:
        logger.warning("Standards lookup failed for %r: %s", topic, e)
        return []

    return [
        EducationalStandard(code=d.code, description=d.description, framework=framework, subject=d.subject)
        for d in drafts
        if d.code
    ]


def dedupe_standards(groups: List[List[EducationalStandard]]) -> List[EducationalStandard]:
    """Flatten per-node results keeping the first standard seen for each code."""
    by_code = {}
    for group in groups:
        for standard in group:
            by_code.setdefault(standard.code, standard)
    return list(by_code.values())
