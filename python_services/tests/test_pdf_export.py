import base64
import re

import pytest

from shared.models import (
    AestheticStyle,
    BloomLevel,
    DiagramSection,
    EducationalStandard,
    InstructionalSuite,
    MatchingSection,
    OutputType,
    QuestionSection,
    Rubric,
    RubricCriterion,
    TextSection,
)
from shared.pdf_export import FONT_FAMILIES, clean_text, font_family, render_suite_pdf, suite_to_html


def _page_count(pdf: bytes) -> int:
    return max(int(n) for n in re.findall(rb"/Count (\d+)", pdf))


def _suite(**overrides) -> InstructionalSuite:
    data = dict(
        id="suite_1",
        title="Fractions &amp; **Number Lines**",
        output_type=OutputType.WORKSHEET,
        bloom_level=BloomLevel.APPLICATION,
        aesthetic=AestheticStyle.ACADEMIC,
        institution_name="Lincoln Elementary",
        instructor_name="Ms. Rivera",
        sections=[
            TextSection(id="s1", title="Warm Up", content="Fractions name *parts* of a whole."),
            QuestionSection(id="s2", title="Pick", content="Which is larger?", options=["1/4", "1/2"], correct_answer=1),
            QuestionSection(id="s3", title="Explain", content="Why?", correct_answer="Bigger parts"),
            MatchingSection(id="s4", title="Match", content="half\nquarter", options=["1/4", "1/2"], correct_answer=[1, 0]),
            DiagramSection(id="s5", title="Draw", content="Draw a number line <0 to 1>."),
        ],
        rubric=Rubric(criteria=[RubricCriterion(criterion="Accuracy", excellent="All", good="Most")]),
    )
    data.update(overrides)
    return InstructionalSuite(**data)


def test_clean_text_strips_markdown_and_entities() -> None:
    assert clean_text("Fractions &amp; **Number Lines**") == "Fractions & Number Lines"
    assert clean_text("## Heading\n_italic_ and *emphasis*") == "Heading\nitalic and emphasis"
    assert clean_text(None) == ""


@pytest.mark.parametrize(
    "aesthetic,font",
    [
        (AestheticStyle.ACADEMIC, "Times-Roman"),
        (AestheticStyle.CLASSIC, "Courier"),
        (AestheticStyle.CREATIVE, "Courier"),
        (AestheticStyle.MODERN, "Helvetica"),
    ],
)
def test_font_family_follows_aesthetic(aesthetic, font) -> None:
    assert font_family(aesthetic)[0] == font
    assert aesthetic in FONT_FAMILIES


def test_render_suite_pdf_produces_pdf_bytes() -> None:
    pdf = render_suite_pdf(_suite())

    assert pdf.startswith(b"%PDF")
    assert b"Times-Roman" in pdf


def test_teacher_key_adds_pages() -> None:
    with_key = render_suite_pdf(_suite(rubric=None), include_teacher_key=True)
    without_key = render_suite_pdf(_suite(rubric=None), include_teacher_key=False)

    assert _page_count(with_key) > _page_count(without_key)


def test_each_resolved_page_starts_a_new_pdf_page() -> None:
    sections = [TextSection(id=f"s{i}", title=f"Section {i}", content="Short.") for i in range(25)]
    pdf = render_suite_pdf(
        _suite(sections=sections, page_count=3, rubric=None), include_teacher_key=False
    )

    assert _page_count(pdf) >= 3


def test_undecodable_doodle_is_skipped() -> None:
    pdf = render_suite_pdf(_suite(doodle_base64="data:image/png;base64," + base64.b64encode(b"not an image").decode()))
    assert pdf.startswith(b"%PDF")


def test_suite_to_html_contains_structure() -> None:
    html = suite_to_html(_suite())

    assert "<h1 style='text-align:center'>Fractions &amp; Number Lines</h1>" in html
    assert "<ol type='A'><li>1/4</li><li>1/2</li></ol>" in html
    assert "<b>Word bank:</b> A. 1/4 | B. 1/2" in html
    assert "Draw a number line &lt;0 to 1&gt;." in html
    assert "B. 1/2" in html
    assert "Teacher Key" in html
    assert "'Times New Roman', serif" in html


def test_suite_to_html_without_key() -> None:
    assert "Teacher Key" not in suite_to_html(_suite(), include_teacher_key=False)


def test_standards_are_listed_under_the_title() -> None:
    standards = [EducationalStandard(code="3.NF.A.2", description="Fractions on a number line")]

    pdf = render_suite_pdf(_suite(standards=standards), include_teacher_key=False)
    html = suite_to_html(_suite(standards=standards))

    assert pdf.startswith(b"%PDF")
    assert "<p class='meta'>Standards: 3.NF.A.2: Fractions on a number line</p>" in html
