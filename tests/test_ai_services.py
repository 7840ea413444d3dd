"""
Tests for the Gemini vision client and the OpenAI insights service.
"""
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from tms.config import settings
from tms.services.dashboard_service import DashboardSummary
from tms.services.errors import ExtractionError, ServiceNotConfiguredError
from tms.services.gemini_service import (
    EMPTY_RESPONSE_MESSAGE,
    UNPARSEABLE_MESSAGE,
    UNREACHABLE_MESSAGE,
    GeminiService,
)
from tms.services.insights_service import InsightsService, build_prompt
from tms.services.ocr_validation import NO_TEXT_MESSAGE

IMAGE = b"\x89PNG fake image bytes"


def gemini_answer(text: str) -> httpx.MockTransport:
    body = {"candidates": [{"content": {"parts": [{"text": text}]}}]}
    return httpx.MockTransport(lambda request: httpx.Response(200, json=body))


@pytest.fixture
def gemini_key(monkeypatch):
    monkeypatch.setattr(settings, "gemini_api_key", "test-key")


class TestStationAnalysis:

    async def test_parses_fenced_json(self, gemini_key):
        text = '```json\n{"station_name": "차지비", "location": "서울 강남구", "address": null, "status": "planned"}\n```'
        service = GeminiService(transport=gemini_answer(text))

        analysis = await service.analyze_station_image(IMAGE, "image/png")

        assert analysis.station_name == "차지비"
        assert analysis.status == "planned"
        assert analysis.address is None

    async def test_non_json_raises(self, gemini_key):
        service = GeminiService(transport=gemini_answer("죄송합니다. 분석할 수 없습니다."))

        with pytest.raises(ExtractionError):
            await service.analyze_station_image(IMAGE, "image/png")

    async def test_missing_key_raises(self):
        with pytest.raises(ServiceNotConfiguredError):
            await GeminiService(transport=gemini_answer("{}")).analyze_station_image(IMAGE, "image/png")

    async def test_request_carries_inline_image(self, gemini_key):
        seen = []

        def handler(request):
            seen.append(request)
            body = {"candidates": [{"content": {"parts": [{"text": '{"station_name": "A", "location": "B"}'}]}}]}
            return httpx.Response(200, json=body)

        await GeminiService(transport=httpx.MockTransport(handler)).analyze_station_image(IMAGE, "image/png")

        [request] = seen
        assert request.url.params["key"] == "test-key"
        inline = json.loads(request.content)["contents"][0]["parts"][1]["inline_data"]
        assert inline["mime_type"] == "image/png"


class TestTaxNoticeOcr:

    async def test_valid_extraction_passes_through(self, gemini_key):
        text = json.dumps({
            "extracted_text": "2025년 재산세 납부고지서 서울특별시 강남구 123",
            "text_sections": [{"section": "주소", "content": "서울특별시 강남구 123"}],
        })
        result = await GeminiService(transport=gemini_answer(text)).extract_tax_notice_text(IMAGE, "image/jpeg")

        assert result.extracted_text.startswith("2025년 재산세")
        assert result.text_sections[0].section == "주소"

    async def test_noise_becomes_placeholder(self, gemini_key):
        text = json.dumps({"extracted_text": "....", "text_sections": [{"section": "x", "content": "---"}]})
        result = await GeminiService(transport=gemini_answer(text)).extract_tax_notice_text(IMAGE, "image/jpeg")

        assert result.extracted_text == NO_TEXT_MESSAGE

    async def test_unreachable_model(self, gemini_key):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        result = await GeminiService(transport=httpx.MockTransport(handler)).extract_tax_notice_text(IMAGE, "image/jpeg")

        assert result.extracted_text == UNREACHABLE_MESSAGE
        assert result.text_sections == []

    async def test_empty_answer(self, gemini_key):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": []}))

        result = await GeminiService(transport=transport).extract_tax_notice_text(IMAGE, "image/jpeg")

        assert result.extracted_text == EMPTY_RESPONSE_MESSAGE

    async def test_unparseable_answer(self, gemini_key):
        result = await GeminiService(transport=gemini_answer("not json at all")).extract_tax_notice_text(
            IMAGE, "image/jpeg"
        )

        assert result.extracted_text == UNPARSEABLE_MESSAGE

    async def test_non_list_sections_keep_text(self, gemini_key):
        text = json.dumps({"extracted_text": "2025년 재산세 서울특별시 강남구 123", "text_sections": 3})

        result = await GeminiService(transport=gemini_answer(text)).extract_tax_notice_text(IMAGE, "image/jpeg")

        assert result.extracted_text == "2025년 재산세 서울특별시 강남구 123"
        assert len(result.text_sections) == 1

    async def test_non_json_body(self, gemini_key):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>gateway</html>"))

        result = await GeminiService(transport=transport).extract_tax_notice_text(IMAGE, "image/jpeg")

        assert result.extracted_text == UNPARSEABLE_MESSAGE
        assert result.text_sections == []

    @pytest.mark.parametrize("candidates", ["oops", [1, 2], [{"content": "text"}], [{"content": {"parts": "x"}}]])
    async def test_malformed_candidates(self, gemini_key, candidates):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"candidates": candidates}))

        result = await GeminiService(transport=transport).extract_tax_notice_text(IMAGE, "image/jpeg")

        assert result.extracted_text == EMPTY_RESPONSE_MESSAGE


class TestInsights:

    def test_prompt_includes_counts(self):
        prompt = build_prompt(DashboardSummary(total_taxes=10, unpaid_taxes=4, overdue_taxes=1))
        assert "총 10개" in prompt
        assert "미납 4개" in prompt
        assert "연체 1개" in prompt

    async def test_analyze_returns_model_text(self):
        client = MagicMock()
        client.chat.completions.create = AsyncMock(
            return_value=SimpleNamespace(
                choices=[SimpleNamespace(message=SimpleNamespace(content="  미납 비율이 높습니다.  "))]
            )
        )

        analysis = await InsightsService(client=client).analyze(DashboardSummary(total_taxes=3))

        assert analysis == "미납 비율이 높습니다."
        client.chat.completions.create.assert_awaited_once()

    async def test_missing_key_raises(self):
        with pytest.raises(ServiceNotConfiguredError):
            await InsightsService().analyze(DashboardSummary())
