"""
Helpers derived from an instructional suite's sections: section-count
policy, pagination and the teacher key.
"""

from __future__ import annotations

import math
from typing import Dict, List, Sequence

from .models import EducationalStandard, Page, TeacherKeyEntry

# Base floors per content type, scaled by ceil(total_sections / 25)
CONTENT_MIX_BASE: Dict[str, int] = {
    "Instructional content with worked examples": 2,
    "Guided practice with sentence frames or scaffolding": 2,
    "Diagram or visualization tasks with explicit directions": 1,
    "Multiple choice questions that expose misconceptions": 1,
    "Short answer questions with think-aloud prompts": 2,
    "Matching exercises with a complete options array": 1,
    "Independent practice problems": 1,
}


def sections_per_page(page_count: int) -> int:
    """Target section density: single pages are denser, long documents lighter."""
    if page_count <= 1:
        return 12
    if page_count <= 3:
        return 10
    return 8


def total_sections(page_count: int) -> int:
    return max(1, page_count) * sections_per_page(page_count)


def content_mix(total: int) -> Dict[str, int]:
    """Advisory minimum count per content type for ``total`` sections."""
    scale = max(1, math.ceil(total / 25))
    return {label: base * scale for label, base in CONTENT_MIX_BASE.items()}


def paginate_sections(sections: Sequence, page_count: int) -> List[Page]:
    """
    Bucket sections into consecutive pages.

    The density target for ``page_count`` is used when it fills exactly
    ``page_count`` pages. Otherwise sections are spread evenly, with earlier pages
    taking one extra section. Every section lands on exactly one page and
    order is preserved.
    """
    if not sections:
        return []
    page_count = max(1, page_count)
    total = len(sections)
    per_page = sections_per_page(page_count)
    if per_page * (page_count - 1) < total <= per_page * page_count:
        sizes = [min(per_page, total - start) for start in range(0, total, per_page)]
    else:
        base, extra = divmod(total, page_count)
        sizes = [base + 1 if i < extra else base for i in range(min(total, page_count))]

    pages: List[Page] = []
    start = 0
    for page_index, size in enumerate(sizes):
        page_number = page_index + 1
        page_sections = [
            section.model_copy(update={"page_number": page_number, "order": start + offset})
            for offset, section in enumerate(sections[start:start + size])
        ]
        pages.append(Page(id=f"page-{page_number}", page_number=page_number, sections=page_sections))
        start += size
    return pages


def derive_teacher_key(sections: Sequence) -> List[TeacherKeyEntry]:
    """Answer key entries for every section that carries an answer."""
    return [
        TeacherKeyEntry(
            section_id=section.id,
            section_title=section.title,
            answer=section.correct_answer,
            explanation=section.explanation,
        )
        for section in sections
        if section.correct_answer is not None
    ]


def format_answer(section) -> str:
    """Human-readable answer for keys and exports."""
    answer = section.correct_answer
    options = section.options or []
    if answer is None:
        return ""
    if section.type == "question" and isinstance(answer, int) and options:
        return f"{chr(ord('A') + answer)}. {options[answer]}"
    if section.type == "matching" and isinstance(answer, list):
        items = [line.strip() for line in section.content.splitlines() if line.strip()]
        pairs = []
        for i, option_index in enumerate(answer):
            item = items[i] if i < len(items) else f"Item {i + 1}"
            pairs.append(f"{item} -> {options[option_index]}")
        return "; ".join(pairs)
    return str(answer)


def format_standards_for_display(standards: Sequence[EducationalStandard]) -> str:
    return "\n\n".join(f"{s.code}: {s.description}" for s in standards)
