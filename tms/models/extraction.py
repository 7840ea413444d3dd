"""OCR result shapes for photographed tax notices."""
from typing import List

from pydantic import BaseModel, Field


class TextSection(BaseModel):
    section: str
    content: str


class TextExtraction(BaseModel):
    """Always well-formed, even when the model returned nothing usable."""
    extracted_text: str = ""
    text_sections: List[TextSection] = Field(default_factory=list)
