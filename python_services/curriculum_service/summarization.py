"""
Condensation of long curriculum documents into a few summary sections.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from pydantic import BaseModel

from shared.llm_client import UnifiedAIService
from shared.models import AIProvider, CondensedCurriculum, CondensedSection
from shared.prompt_templates import SUMMARIZATION_SYSTEM, summarization_prompt

logger = logging.getLogger(__name__)


class _SummaryDraft(BaseModel):
    sections: List[CondensedSection]


def _word_count(text: str) -> int:
    return len(text.split())


async def condense_curriculum(
    ai: UnifiedAIService,
    text: str,
    num_sections: int = 5,
    preferred_provider: Optional[AIProvider] = AIProvider.CLAUDE,
) -> Tuple[CondensedCurriculum, str]:
    """Summarize ``text`` into at most ``num_sections`` sections."""
    draft, model = await ai.generate_json_with_model(
        summarization_prompt(text, num_sections),
        _SummaryDraft,
        system=SUMMARIZATION_SYSTEM,
        preferred_provider=preferred_provider,
        temperature=0.1,
        operation="curriculum condensation",
    )
    sections = draft.sections[:num_sections]
    condensed_words = sum(_word_count(s.summary) + sum(_word_count(p) for p in s.key_points) for s in sections)
    result = CondensedCurriculum(
        sections=sections,
        original_length_words=_word_count(text),
        condensed_length_words=condensed_words,
    )
    logger.info(
        "Condensed %d words into %d sections (%d words)",
        result.original_length_words, len(sections), condensed_words,
    )
    return result, model
