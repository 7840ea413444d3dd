"""
Insights Service
Asks an OpenAI model for a short plain-text analysis of the current tax load.
"""
import logging
from typing import Optional

from openai import AsyncOpenAI

from tms.config import settings
from tms.services.dashboard_service import DashboardSummary
from tms.services.errors import ServiceNotConfiguredError

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "한국 세무 전문가로서 마크다운 형식 없이 일반 텍스트로만 간결한 분석을 제공하세요."


def build_prompt(summary: DashboardSummary) -> str:
    return (
        f"세금 데이터: 총 {summary.total_taxes}개, 미납 {summary.unpaid_taxes}개, "
        f"연체 {summary.overdue_taxes}개, 이번달 {summary.monthly_due}개, 이번주 {summary.weekly_due}개\n\n"
        "현재 세금 현황 요약\n"
        "위 데이터를 바탕으로 현재 세금 상황을 3-4문단으로 간결하게 분석해주세요. "
        "미납 비율, 연체 상태, 납부 일정 압박도, 위험도 평가, 한 줄 요약을 포함하세요.\n\n"
        "중요: 마크다운 형식(#, ##, ###)을 사용하지 말고 일반 텍스트로만 작성하세요."
    )


class InsightsService:
    def __init__(self, client: Optional[AsyncOpenAI] = None) -> None:
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            if not settings.openai_api_key:
                raise ServiceNotConfiguredError("OPENAI_API_KEY not found")
            self._client = AsyncOpenAI(api_key=settings.openai_api_key)
        return self._client

    async def analyze(self, summary: DashboardSummary) -> str:
        client = self._get_client()
        response = await client.chat.completions.create(
            model=settings.openai_model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": build_prompt(summary)},
            ],
            max_tokens=500,
            temperature=0.4,
        )
        analysis = (response.choices[0].message.content or "").strip()
        logger.info("Generated tax insights (%d chars)", len(analysis))
        return analysis


insights_service = InsightsService()
