"""
PDF and HTML export of instructional suites.

The PDF uses ReportLab platypus: one story per resolved page, a header
with branding and a name/date line, and an "institution | Page x of y"
footer drawn by a two-pass canvas.
"""

from __future__ import annotations

import base64
import html
import io
import logging
import re
from typing import List, Optional

from reportlab.lib import colors
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from reportlab.platypus import (
    Image,
    KeepTogether,
    PageBreak,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from .models import AestheticStyle, InstructionalSuite, Rubric
from .suite_utils import format_answer, format_standards_for_display

logger = logging.getLogger(__name__)

PAGE_W, PAGE_H = letter
MARGIN = 20 * mm
# Frame width inside the margins (platypus frames pad 6pt per side)
CONTENT_W = PAGE_W - 2 * MARGIN - 12
LETTERS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"

# Built-in PDF fonts per aesthetic: (regular, bold, italic)
FONT_FAMILIES = {
    AestheticStyle.ACADEMIC: ("Times-Roman", "Times-Bold", "Times-Italic"),
    AestheticStyle.CLASSIC: ("Courier", "Courier-Bold", "Courier-Oblique"),
    AestheticStyle.CREATIVE: ("Courier", "Courier-Bold", "Courier-Oblique"),
    AestheticStyle.MODERN: ("Helvetica", "Helvetica-Bold", "Helvetica-Oblique"),
}

_BOLD_RE = re.compile(r"\*\*(.+?)\*\*|__(.+?)__")
_ITALIC_RE = re.compile(r"(?<![\w*])\*(?!\s)(.+?)(?<!\s)\*(?![\w*])|(?<![\w_])_(?!\s)(.+?)(?<!\s)_(?![\w_])")
_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s*", re.MULTILINE)


def clean_text(text: Optional[str]) -> str:
    """Decode HTML entities and strip markdown emphasis and headings."""
    if not text:
        return ""
    text = html.unescape(str(text))
    text = _BOLD_RE.sub(lambda m: m.group(1) or m.group(2), text)
    text = _ITALIC_RE.sub(lambda m: m.group(1) or m.group(2), text)
    text = _HEADING_RE.sub("", text)
    return text.strip()


def _para_text(text: Optional[str]) -> str:
    """Clean text and escape it for Paragraph markup, keeping line breaks."""
    return html.escape(clean_text(text), quote=False).replace("\n", "<br/>")


def font_family(aesthetic: AestheticStyle) -> tuple:
    return FONT_FAMILIES.get(aesthetic, FONT_FAMILIES[AestheticStyle.MODERN])


def get_styles(aesthetic: AestheticStyle):
    regular, bold, italic = font_family(aesthetic)
    st = getSampleStyleSheet()

    def add(name, **kw):
        font = kw.pop("fontName", regular)
        st.add(ParagraphStyle(name, fontName=font, **kw))

    add("SuiteTitle", fontName=bold, fontSize=18, leading=22, alignment=1, spaceAfter=6)
    add("SuiteMeta", fontSize=10, leading=13, alignment=1, textColor=colors.grey, spaceAfter=4)
    add("SectionTitle", fontName=bold, fontSize=12.5, leading=16, spaceBefore=8, spaceAfter=4)
    add("Body", fontSize=11, leading=15, spaceAfter=4)
    add("Opt", fontSize=11, leading=14, leftIndent=18, spaceAfter=2)
    add("Line", fontSize=11, leading=16, leftIndent=10, textColor=colors.grey)
    add("Expl", fontName=italic, fontSize=9.5, leading=12, leftIndent=18, textColor=colors.grey, spaceAfter=6)
    add("KeyHeader", fontName=bold, fontSize=15, leading=19, alignment=1, spaceAfter=10)
    add("Small", fontSize=9, leading=11)
    return st


class NumberedCanvas(canvas.Canvas):
    """Defers page output so the footer can show the total page count."""

    def __init__(self, *args, footer_label: str = "", footer_font: str = "Helvetica", **kwargs):
        super().__init__(*args, **kwargs)
        self._saved_page_states = []
        self._footer_label = footer_label
        self._footer_font = footer_font

    def showPage(self):
        self._saved_page_states.append(dict(self.__dict__))
        self._startPage()

    def save(self):
        total = len(self._saved_page_states)
        for state in self._saved_page_states:
            self.__dict__.update(state)
            self._draw_footer(total)
            super().showPage()
        super().save()

    def _draw_footer(self, total: int):
        self.setFont(self._footer_font, 9)
        self.setFillColor(colors.grey)
        label = f"© {self._footer_label} | " if self._footer_label else ""
        self.drawCentredString(PAGE_W / 2, 12 * mm, f"{label}Page {self._pageNumber} of {total}")


def _canvas_maker(footer_label: str, footer_font: str):
    def make(*args, **kwargs):
        return NumberedCanvas(*args, footer_label=footer_label, footer_font=footer_font, **kwargs)
    return make


def _header(suite: InstructionalSuite, st) -> List:
    story: List = []
    if suite.institution_name:
        story.append(Paragraph(_para_text(suite.institution_name), st["SuiteMeta"]))
    story.append(Paragraph(_para_text(suite.title), st["SuiteTitle"]))
    meta = [suite.output_type.value]
    if suite.instructor_name:
        meta.append(f"Instructor: {suite.instructor_name}")
    if suite.grade_level:
        meta.append(suite.grade_level)
    story.append(Paragraph(html.escape(" | ".join(meta)), st["SuiteMeta"]))
    if suite.standards:
        standards = format_standards_for_display(suite.standards)
        story.append(Paragraph(_para_text(f"Standards:\n{standards}"), st["Small"]))
    story.append(Paragraph("Name: ______________________________ &nbsp;&nbsp; Date: ______________", st["Body"]))

    doodle = _doodle_image(suite.doodle_base64)
    if doodle is not None:
        story.append(doodle)
    story.append(Spacer(1, 8))
    return story


def _doodle_image(data_url: Optional[str]) -> Optional[Image]:
    if not data_url:
        return None
    encoded = data_url.split(",", 1)[1] if data_url.startswith("data:") else data_url
    try:
        raw = base64.b64decode(encoded)
        ImageReader(io.BytesIO(raw)).getSize()
    except Exception as e:
        logger.warning("Skipping doodle image that could not be decoded: %s", e)
        return None
    image = Image(io.BytesIO(raw), width=28 * mm, height=28 * mm)
    image.hAlign = "RIGHT"
    return image


def _drawing_box(height: float = 45 * mm) -> Table:
    box = Table([[""]], colWidths=[CONTENT_W], rowHeights=[height])
    box.setStyle(TableStyle([("BOX", (0, 0), (-1, -1), 1, colors.grey)]))
    return box


def _answer_lines(count: int, st) -> List:
    return [Paragraph("_" * 60, st["Line"]) for _ in range(count)]


def _section_flowables(section, number: int, st) -> List:
    title = _para_text(section.title)
    if section.points:
        title += f' <font size="9">({section.points} pts)</font>'
    block: List = [Paragraph(f"{number}. {title}" if title else f"{number}.", st["SectionTitle"])]
    if section.content and section.type != "matching":
        block.append(Paragraph(_para_text(section.content), st["Body"]))

    if section.type == "question":
        if section.options:
            for letter, option in zip(LETTERS, section.options):
                block.append(Paragraph(f"{letter}. {_para_text(option)}", st["Opt"]))
        else:
            block.extend(_answer_lines(3, st))
    elif section.type == "matching":
        items = [line.strip() for line in section.content.splitlines() if line.strip()]
        for i, item in enumerate(items, start=1):
            block.append(Paragraph(f"{i}. {_para_text(item)} &nbsp; ______", st["Opt"]))
        if section.options:
            bank = " &nbsp;|&nbsp; ".join(
                f"{letter}. {_para_text(option)}" for letter, option in zip(LETTERS, section.options)
            )
            block.append(Spacer(1, 4))
            block.append(Paragraph(f"<b>Word bank:</b> {bank}", st["Body"]))
    elif section.type == "diagram_placeholder":
        block.append(_drawing_box())

    block.append(Spacer(1, 6))
    return [KeepTogether(block)]


def _teacher_key_story(suite: InstructionalSuite, st) -> List:
    sections = [s for s in suite.sections if s.correct_answer is not None]
    story: List = [PageBreak(), Paragraph(f"{_para_text(suite.title)} - Teacher Key", st["KeyHeader"])]
    if not sections:
        story.append(Paragraph("No answers were provided for this material.", st["Body"]))
        return story
    for section in sections:
        story.append(Paragraph(f"<b>{_para_text(section.title)}</b>", st["Body"]))
        story.append(Paragraph(_para_text(format_answer(section)), st["Opt"]))
        if section.explanation:
            story.append(Paragraph(_para_text(section.explanation), st["Expl"]))
    return story


def _rubric_story(rubric: Rubric, st) -> List:
    header = ["Criterion", "Excellent", "Good", "Satisfactory", "Needs Improvement", "Pts"]
    rows = [[Paragraph(f"<b>{h}</b>", st["Small"]) for h in header]]
    for c in rubric.criteria:
        rows.append([
            Paragraph(_para_text(value), st["Small"])
            for value in (c.criterion, c.excellent, c.good, c.satisfactory, c.needs_improvement, str(c.points))
        ])
    table = Table(rows, colWidths=[CONTENT_W * w for w in (0.18, 0.19, 0.19, 0.19, 0.19, 0.06)], repeatRows=1)
    table.setStyle(TableStyle([
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("BACKGROUND", (0, 0), (-1, 0), colors.whitesmoke),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    return [
        PageBreak(),
        Paragraph("Grading Rubric", st["KeyHeader"]),
        table,
        Spacer(1, 6),
        Paragraph(f"Total points: {rubric.total_points} ({_para_text(rubric.scale)})", st["Body"]),
    ]


def render_suite_pdf(suite: InstructionalSuite, include_teacher_key: bool = True) -> bytes:
    """Render ``suite`` to PDF bytes."""
    st = get_styles(suite.aesthetic)
    regular, _, _ = font_family(suite.aesthetic)

    story: List = _header(suite, st)
    number = 1
    for index, page in enumerate(suite.resolved_pages()):
        if index:
            story.append(PageBreak())
        for section in page.sections:
            story.extend(_section_flowables(section, number, st))
            number += 1

    if include_teacher_key:
        story.extend(_teacher_key_story(suite, st))
    if suite.rubric and suite.rubric.criteria:
        story.extend(_rubric_story(suite.rubric, st))

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=letter,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN,
        title=suite.title,
        author=suite.instructor_name or "",
    )
    doc.build(story, canvasmaker=_canvas_maker(suite.institution_name or "", regular))
    logger.info("Rendered suite %s to PDF (%d sections)", suite.id, len(suite.sections))
    return buffer.getvalue()


_CSS_FONTS = {
    AestheticStyle.ACADEMIC: "'Times New Roman', serif",
    AestheticStyle.CLASSIC: "'Courier New', monospace",
    AestheticStyle.CREATIVE: "'Courier New', monospace",
    AestheticStyle.MODERN: "Helvetica, Arial, sans-serif",
}


def suite_to_html(suite: InstructionalSuite, include_teacher_key: bool = True) -> str:
    """Standalone printable HTML with the same structure as the PDF."""
    esc = lambda value: html.escape(clean_text(value)).replace("\n", "<br>")  # noqa: E731
    parts = [
        "<!DOCTYPE html><html><head><meta charset='utf-8'>",
        f"<title>{esc(suite.title)}</title>",
        "<style>",
        f"body{{font-family:{_CSS_FONTS.get(suite.aesthetic, _CSS_FONTS[AestheticStyle.MODERN])};margin:20mm;}}",
        ".page{page-break-after:always}.box{border:1px solid #999;height:45mm}",
        ".meta{color:#777;text-align:center}.line{border-bottom:1px solid #999;height:1.4em}",
        "</style></head><body>",
    ]
    if suite.institution_name:
        parts.append(f"<p class='meta'>{esc(suite.institution_name)}</p>")
    parts.append(f"<h1 style='text-align:center'>{esc(suite.title)}</h1>")
    if suite.standards:
        parts.append(f"<p class='meta'>Standards: {esc(format_standards_for_display(suite.standards))}</p>")
    parts.append("<p>Name: ____________________ Date: __________</p>")

    number = 1
    for page in suite.resolved_pages():
        parts.append(f"<div class='page' data-page='{page.page_number}'>")
        for section in page.sections:
            parts.append(f"<h3>{number}. {esc(section.title)}</h3>")
            if section.type == "matching":
                items = [line for line in section.content.splitlines() if line.strip()]
                parts.append("<ol>" + "".join(f"<li>{esc(i)} ______</li>" for i in items) + "</ol>")
                if section.options:
                    parts.append("<p><b>Word bank:</b> " + " | ".join(
                        f"{l}. {esc(o)}" for l, o in zip(LETTERS, section.options)) + "</p>")
            else:
                parts.append(f"<p>{esc(section.content)}</p>")
                if section.type == "question" and section.options:
                    parts.append("<ol type='A'>" + "".join(f"<li>{esc(o)}</li>" for o in section.options) + "</ol>")
                elif section.type == "question":
                    parts.append("<div class='line'></div>" * 3)
                elif section.type == "diagram_placeholder":
                    parts.append("<div class='box'></div>")
            number += 1
        parts.append("</div>")

    if include_teacher_key and suite.teacher_key:
        parts.append("<h2>Teacher Key</h2><ul>")
        for section in suite.sections:
            if section.correct_answer is not None:
                parts.append(f"<li><b>{esc(section.title)}</b>: {esc(format_answer(section))}</li>")
        parts.append("</ul>")
    parts.append("</body></html>")
    return "".join(parts)
