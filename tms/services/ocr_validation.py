"""
Quality gate for OCR output.
Vision models happily return dashes, dots or a couple of stray glyphs for a
blurry photo; such text is treated as "nothing extracted" and replaced with a
user-facing placeholder instead of being shown as-is.
"""
import re
from typing import Any, List

from tms.models.extraction import TextExtraction, TextSection

MIN_LENGTH = 10
MIN_MEANINGFUL_CHARS = 5
MIN_DISTINCT_CHARS = 3

MEANINGFUL_CHAR = re.compile(r"[가-힣a-zA-Z0-9]")
NOISE_PATTERN = re.compile(r"^[^\w가-힣]*$|^[.]{3,}$|^[-]{3,}$|^[_]{3,}$")

NO_TEXT_MESSAGE = "이미지에서 의미있는 텍스트를 찾을 수 없습니다. 더 선명한 이미지를 업로드해주세요."
NO_TEXT_GUIDANCE = TextSection(section="안내", content="텍스트가 명확하게 보이는 고화질 이미지를 사용해주세요.")
LOW_QUALITY_MESSAGE = "추출된 텍스트의 품질이 낮습니다."
FALLBACK_SECTION_TITLE = "추출 결과"


def is_meaningful_text(text: Any) -> bool:
    if not text or not isinstance(text, str):
        return False
    stripped = text.strip()
    if len(stripped) < MIN_LENGTH:
        return False
    if len(MEANINGFUL_CHAR.findall(text)) < MIN_MEANINGFUL_CHARS:
        return False
    if len(set(re.sub(r"\s", "", text))) < MIN_DISTINCT_CHARS:
        return False
    if NOISE_PATTERN.match(stripped):
        return False
    return True


def is_valid_section(section: Any) -> bool:
    if not isinstance(section, dict):
        return False
    title = section.get("section")
    content = section.get("content")
    return (
        isinstance(title, str)
        and isinstance(content, str)
        and bool(title.strip())
        and is_meaningful_text(content)
    )


def validate_extraction(extracted_text: Any, sections: Any) -> TextExtraction:
    """Filter raw model output down to a well-formed, meaningful result."""
    text_ok = is_meaningful_text(extracted_text)
    if not isinstance(sections, list):
        sections = []
    valid_sections: List[TextSection] = [
        TextSection(section=s["section"], content=s["content"])
        for s in sections
        if is_valid_section(s)
    ]

    if not text_ok and not valid_sections:
        return TextExtraction(extracted_text=NO_TEXT_MESSAGE, text_sections=[NO_TEXT_GUIDANCE])

    if not valid_sections:
        valid_sections = [TextSection(section=FALLBACK_SECTION_TITLE, content=extracted_text)]
    return TextExtraction(
        extracted_text=extracted_text if text_ok else LOW_QUALITY_MESSAGE,
        text_sections=valid_sections,
    )
