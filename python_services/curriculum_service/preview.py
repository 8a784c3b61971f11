"""
Quick preview of a suite using a provider's fast model.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from shared.llm_client import UnifiedAIService
from shared.models import AIProvider, BloomLevel, CurriculumNode, Differentiation, OutputType, SuitePreview
from shared.prompt_templates import preview_prompt

logger = logging.getLogger(__name__)

PREVIEW_SYSTEM = "You are an educational content preview generator. Return ONLY valid JSON, no commentary."


async def generate_quick_preview(
    ai: UnifiedAIService,
    node: CurriculumNode,
    output_type: OutputType,
    bloom_level: BloomLevel,
    differentiation: Differentiation,
    preferred_provider: Optional[AIProvider] = AIProvider.OPENAI,
) -> Tuple[SuitePreview, str]:
    """Return the preview and the model that produced it."""
    preview, model = await ai.generate_json_with_model(
        preview_prompt(node, output_type.value, bloom_level.value, differentiation.value),
        SuitePreview,
        system=PREVIEW_SYSTEM,
        preferred_provider=preferred_provider,
        fast=True,
        temperature=0.4,
        max_tokens=1000,
        operation="quick preview",
    )
    if not preview.title:
        preview.title = node.title
    return preview, model
