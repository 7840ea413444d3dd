"""
Gemini Service
Thin wrapper around the Gemini generateContent API for reading photos of
charging stations and tax notices.
"""
from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from tms.config import settings
from tms.models.extraction import TextExtraction
from tms.models.stations import StationImageAnalysis
from tms.services.errors import ExtractionError, ServiceNotConfiguredError
from tms.services.ocr_validation import validate_extraction

logger = logging.getLogger(__name__)

UNREACHABLE_MESSAGE = "AI 서비스에 연결할 수 없습니다."
EMPTY_RESPONSE_MESSAGE = "AI가 응답을 생성하지 못했습니다."
UNPARSEABLE_MESSAGE = "AI 분석 결과를 파싱할 수 없습니다."

STATION_PROMPT = """이 이미지는 전기차 충전소 관련 사진입니다. 다음 정보를 추출해주세요:

1. 충전소명 (브랜드명, 회사명 등)
2. 위치 (도시, 구역, 지역명)
3. 상세 주소 (있다면)
4. 운영 상태 (operating: 운영중, maintenance: 점검중, planned: 운영예정 중 하나)

이미지에서 텍스트나 표지판을 읽어서 정확한 정보를 추출해주세요. 한국어로 응답해주세요.
반드시 다음 JSON 형식으로만 응답하세요:
{"station_name": "...", "location": "...", "address": "... 또는 null", "status": "operating|maintenance|planned"}"""

OCR_PROMPT = """이미지에서 인식되는 모든 텍스트를 정확히 읽어서 JSON 형태로 정리해주세요.

- 이미지에서 읽을 수 있는 모든 한글, 영어, 숫자를 포함
- 텍스트의 위치나 순서대로 정리
- 표, 양식, 라벨, 값 등 모든 내용 포함

반드시 다음 JSON 형식으로만 응답하세요:
{"extracted_text": "인식된 모든 텍스트", "text_sections": [{"section": "섹션명", "content": "해당 영역의 텍스트"}]}"""

OCR_SYSTEM = (
    "You are an expert OCR text extraction system. You read all text from images "
    "including Korean, English, and numbers. Return ONLY valid JSON."
)


class GeminiService:
    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.transport = transport

    @property
    def api_key(self) -> str:
        if not settings.gemini_api_key:
            raise ServiceNotConfiguredError("GEMINI_API_KEY environment variable is required")
        return settings.gemini_api_key

    def _image_body(self, prompt: str, image: bytes, mime_type: str, system: Optional[str] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "contents": [
                {
                    "role": "user",
                    "parts": [
                        {"text": prompt},
                        {
                            "inline_data": {
                                "mime_type": mime_type or "image/jpeg",
                                "data": base64.b64encode(image).decode("ascii"),
                            }
                        },
                    ],
                }
            ],
            "generationConfig": {"temperature": 0.1, "responseMimeType": "application/json"},
        }
        if system:
            body["system_instruction"] = {"parts": [{"text": system}]}
        return body

    async def analyze_station_image(self, image: bytes, mime_type: str) -> StationImageAnalysis:
        body = self._image_body(STATION_PROMPT, image, mime_type)
        text = await self._invoke_gemini(model=settings.gemini_vision_model, body=body)
        parsed = self._maybe_parse_jsonish(text)
        if parsed is None:
            raise ExtractionError("Station analysis returned non-JSON content")
        try:
            return StationImageAnalysis.model_validate(parsed)
        except ValidationError as exc:
            raise ExtractionError(f"Station analysis returned an unexpected shape: {exc}") from exc

    async def extract_tax_notice_text(self, image: bytes, mime_type: str) -> TextExtraction:
        """OCR a tax notice. Every failure is downgraded to a placeholder result."""
        body = self._image_body(OCR_PROMPT, image, mime_type, system=OCR_SYSTEM)
        try:
            text = await self._invoke_gemini(model=settings.gemini_vision_model, body=body)
        except (ServiceNotConfiguredError, httpx.HTTPError) as exc:
            logger.error("Tax notice OCR call failed: %s", exc)
            return TextExtraction(extracted_text=UNREACHABLE_MESSAGE)
        except ExtractionError:
            logger.warning("Tax notice OCR returned an empty response")
            return TextExtraction(extracted_text=EMPTY_RESPONSE_MESSAGE)
        except ValueError as exc:
            logger.warning("Tax notice OCR response body was not JSON: %s", exc)
            return TextExtraction(extracted_text=UNPARSEABLE_MESSAGE)

        parsed = self._maybe_parse_jsonish(text)
        if parsed is None:
            logger.warning("Tax notice OCR returned unparseable content: %.200s", text)
            return TextExtraction(extracted_text=UNPARSEABLE_MESSAGE)
        return validate_extraction(parsed.get("extracted_text", ""), parsed.get("text_sections"))

    async def _invoke_gemini(self, *, model: str, body: Dict[str, Any]) -> str:
        url = f"{settings.gemini_api_base_url}/{model}:generateContent"
        async with httpx.AsyncClient(timeout=30, transport=self.transport) as client:
            response = await client.post(url, params={"key": self.api_key}, json=body)
            try:
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                # Surface a clear error when model/endpoint is invalid.
                detail = (
                    f"Gemini request failed ({response.status_code}): {response.text}. "
                    f"Check model '{model}' and base_url '{settings.gemini_api_base_url}'."
                )
                raise httpx.HTTPStatusError(detail, request=exc.request, response=exc.response)
            return self._extract_text(response.json())

    def _maybe_parse_jsonish(self, text: str) -> Optional[Dict[str, Any]]:
        """
        Parse JSON that may be wrapped in markdown code fences or surrounded
        by chatter; falls back to the outermost {...} span.
        """
        candidate = text.strip()
        if candidate.startswith("```"):
            lines = candidate.splitlines()
            if lines and lines[0].startswith("```"):
                lines = lines[1:]
            if lines and lines[-1].startswith("```"):
                lines = lines[:-1]
            candidate = "\n".join(lines).strip()
        start, end = candidate.find("{"), candidate.rfind("}")
        if start == -1 or end < start:
            return None
        try:
            parsed = json.loads(candidate[start:end + 1])
        except json.JSONDecodeError:
            return None
        return parsed if isinstance(parsed, dict) else None

    def _extract_text(self, payload: Dict[str, Any]) -> str:
        candidates = payload.get("candidates") if isinstance(payload, dict) else None
        if not isinstance(candidates, list):
            candidates = []
        for candidate in candidates:
            content = candidate.get("content") if isinstance(candidate, dict) else None
            parts = content.get("parts") if isinstance(content, dict) else None
            if isinstance(parts, list) and parts and isinstance(parts[0], dict):
                text = parts[0].get("text")
                if isinstance(text, str) and text:
                    return text
        raise ExtractionError("No content returned from Gemini")


gemini_service = GeminiService()
