"""
Tests for the outbound webhook and SendGrid clients.
"""
import json

import httpx
import pytest

from tms.config import settings
from tms.services.email_service import EmailService
from tms.services.errors import EmailDeliveryError, ServiceNotConfiguredError
from tms.services.webhook_service import DeliveryTally, WebhookService, dedupe_urls


class TestWebhookService:

    async def test_broadcast_posts_text_to_every_url(self, webhook_transport):
        service = WebhookService(transport=webhook_transport)

        tally = await service.broadcast(["https://a.example.com/hook", "https://b.example.com/hook"], "안녕하세요")

        assert tally == DeliveryTally(sent=2, failed=0)
        assert [json.loads(r.content) for r in webhook_transport.calls] == [{"text": "안녕하세요"}] * 2

    async def test_transport_error_counts_as_failure(self):
        def handler(request):
            if "down" in str(request.url):
                raise httpx.ConnectError("connection refused", request=request)
            return httpx.Response(200)

        service = WebhookService(transport=httpx.MockTransport(handler))

        tally = await service.broadcast(["https://down.example.com/hook", "https://up.example.com/hook"], "x")

        assert tally == DeliveryTally(sent=1, failed=1)

    async def test_malformed_url_counts_as_failure(self, webhook_transport):
        service = WebhookService(transport=webhook_transport)

        tally = await service.broadcast(["https://hooks.example.com/ok", "http://a:b:c/"], "hi")

        assert tally == DeliveryTally(sent=1, failed=1)
        assert [str(r.url) for r in webhook_transport.calls] == ["https://hooks.example.com/ok"]

    async def test_no_urls_is_a_noop(self, webhook_transport):
        tally = await WebhookService(transport=webhook_transport).broadcast([], "x")
        assert tally == DeliveryTally()
        assert webhook_transport.calls == []

    def test_dedupe_keeps_http_urls_in_order(self):
        urls = ["https://a/1", "ftp://b/2", "https://a/1", "", "http://c/3"]
        assert dedupe_urls(urls) == ["https://a/1", "http://c/3"]


class TestEmailService:

    async def test_unconfigured_raises(self):
        with pytest.raises(ServiceNotConfiguredError):
            await EmailService().send_email(["a@example.com"], "제목", "본문")

    async def test_sends_bearer_authorized_request(self, monkeypatch):
        monkeypatch.setattr(settings, "sendgrid_api_key", "SG.key")
        monkeypatch.setattr(settings, "sendgrid_from_email", "noreply@example.com")
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(202)

        await EmailService(transport=httpx.MockTransport(handler)).send_email(
            ["a@example.com"], "제목", "첫 줄\n둘째 줄"
        )

        [request] = seen
        assert request.headers["Authorization"] == "Bearer SG.key"
        payload = json.loads(request.content)
        assert payload["from"]["email"] == "noreply@example.com"
        assert payload["content"][1]["value"] == "<p>첫 줄<br>둘째 줄</p>"

    async def test_provider_error_raises_delivery_error(self, monkeypatch):
        monkeypatch.setattr(settings, "sendgrid_api_key", "SG.key")
        monkeypatch.setattr(settings, "sendgrid_from_email", "noreply@example.com")
        transport = httpx.MockTransport(lambda request: httpx.Response(401, text="unauthorized"))

        with pytest.raises(EmailDeliveryError):
            await EmailService(transport=transport).send_email(["a@example.com"], "제목", "본문")
