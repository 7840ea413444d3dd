"""
API tests: authentication, capability checks, batch job endpoints and the
HTTP error mapping.
"""
import logging

from conftest import insert_reminder, insert_schedule, insert_station, insert_tax
from tms.config import settings
from tms.services.webhook_service import webhook_service


async def _register(client, email, password="secret1", name=None):
    return await client.post("/auth/register", json={"email": email, "password": password, "name": name})


async def _login(client, email, password="secret1"):
    response = await client.post("/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200
    return response.json()["data"]


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


class TestAuthentication:

    async def test_first_user_is_admin_then_viewers(self, client):
        first = await _register(client, "owner@example.com", name="대표")
        second = await _register(client, "staff@example.com")

        assert first.status_code == 201
        assert first.json()["data"]["role"] == "admin"
        assert second.json()["data"]["role"] == "viewer"

    async def test_duplicate_email_rejected(self, client):
        await _register(client, "owner@example.com")
        response = await _register(client, "owner@example.com")
        assert response.status_code == 400

    async def test_wrong_password_rejected(self, client):
        await _register(client, "owner@example.com")
        response = await client.post("/auth/login", json={"email": "owner@example.com", "password": "wrong-pw"})
        assert response.status_code == 401

    async def test_me_reports_capabilities(self, client):
        await _register(client, "owner@example.com")
        await _register(client, "staff@example.com")
        tokens = await _login(client, "staff@example.com")

        response = await client.get("/auth/me", headers=_bearer(tokens["access_token"]))

        assert response.status_code == 200
        assert response.json()["data"]["capabilities"] == ["create_reminder", "view"]

    async def test_logged_out_token_is_rejected(self, client):
        await _register(client, "owner@example.com")
        tokens = await _login(client, "owner@example.com")
        headers = _bearer(tokens["access_token"])

        assert (await client.get("/auth/me", headers=headers)).status_code == 200
        assert (await client.post("/auth/logout", headers=headers)).status_code == 200
        assert (await client.get("/auth/me", headers=headers)).status_code == 401

    async def test_refresh_token_cannot_be_used_as_access_token(self, client):
        await _register(client, "owner@example.com")
        tokens = await _login(client, "owner@example.com")

        response = await client.get("/auth/me", headers=_bearer(tokens["refresh_token"]))

        assert response.status_code == 401

    async def test_refresh_issues_new_pair(self, client):
        await _register(client, "owner@example.com")
        tokens = await _login(client, "owner@example.com")

        response = await client.post("/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

        assert response.status_code == 200
        new_access = response.json()["data"]["access_token"]
        assert (await client.get("/auth/me", headers=_bearer(new_access))).status_code == 200

    async def test_admin_promotes_viewer(self, client):
        await _register(client, "owner@example.com")
        staff = (await _register(client, "staff@example.com")).json()["data"]
        admin_tokens = await _login(client, "owner@example.com")

        response = await client.put(
            f"/auth/users/{staff['id']}/role",
            json={"role": "admin"},
            headers=_bearer(admin_tokens["access_token"]),
        )

        assert response.status_code == 200
        assert response.json()["data"]["role"] == "admin"

    async def test_viewer_cannot_change_roles(self, client):
        owner = (await _register(client, "owner@example.com")).json()["data"]
        await _register(client, "staff@example.com")
        staff_tokens = await _login(client, "staff@example.com")

        response = await client.put(
            f"/auth/users/{owner['id']}/role",
            json={"role": "viewer"},
            headers=_bearer(staff_tokens["access_token"]),
        )

        assert response.status_code == 403


class TestCapabilities:

    async def test_viewer_refused_on_admin_route(self, client, login_as, viewer_session):
        login_as(viewer_session)
        response = await client.post("/stations/", json={"station_name": "A", "location": "B"})
        assert response.status_code == 403

    async def test_viewer_can_read_and_create_reminder(self, client, login_as, viewer_session):
        login_as(viewer_session)

        assert (await client.get("/stations/")).status_code == 200
        response = await client.post(
            "/notifications/",
            json={"notification_date": "2025-03-10", "notification_time": "09:00", "message": "점검 알림"},
        )

        assert response.status_code == 201
        assert response.json()["data"]["notification_type"] == "manual"
        assert response.json()["data"]["notification_time"] == "09:00"

    async def test_viewer_cannot_send_notifications(self, client, db, login_as, viewer_session):
        login_as(viewer_session)
        reminder_id = await insert_reminder(db, "2025-03-10", "09:00")

        response = await client.post(f"/notifications/{reminder_id}/send")

        assert response.status_code == 403

    async def test_missing_token_is_unauthorized(self, client):
        assert (await client.get("/stations/")).status_code == 401


class TestResourceRoutes:

    async def test_station_create_is_audited(self, client, db, login_as, admin_session):
        login_as(admin_session)

        response = await client.post("/stations/", json={"station_name": "판교 충전소", "location": "성남시"})
        logs = await client.get("/audit-logs/")

        assert response.status_code == 201
        data = logs.json()["data"]
        assert data["total_count"] == 1
        assert data["logs"][0]["action"] == "create"
        assert data["logs"][0]["actor_name"] == admin_session.name

    async def test_station_with_taxes_delete_conflict(self, client, db, login_as, admin_session):
        login_as(admin_session)
        station_id = await insert_station(db)
        await insert_tax(db, "2025-03-10", station_id=station_id)

        response = await client.delete(f"/stations/{station_id}")

        assert response.status_code == 409

    async def test_tax_step_skip_is_bad_request(self, client, db, login_as, admin_session):
        login_as(admin_session)
        tax_id = await insert_tax(db, "2025-03-10", tax_type="acquisition", status="accounting_review")

        response = await client.post(f"/taxes/{tax_id}/status", json={"status": "payment_completed"})

        assert response.status_code == 400

    async def test_tax_detail_includes_workflow(self, client, db, login_as, viewer_session):
        login_as(viewer_session)
        tax_id = await insert_tax(db, "2025-03-10")

        response = await client.get(f"/taxes/{tax_id}")

        workflow = response.json()["data"]["workflow"]
        assert [s["status"] for s in workflow["steps"]] == ["payment_scheduled", "payment_completed"]

    async def test_unknown_tax_is_not_found(self, client, login_as, viewer_session):
        login_as(viewer_session)
        assert (await client.get("/taxes/missing")).status_code == 404

    async def test_tax_calendar(self, client, db, login_as, viewer_session):
        login_as(viewer_session)
        await insert_tax(db, "2025-03-10")

        response = await client.get("/taxes/calendar", params={"year": 2025, "month": 3})

        assert list(response.json()["data"]) == ["2025-03-10"]

    async def test_sending_sent_reminder_conflicts(self, client, db, login_as, admin_session):
        login_as(admin_session)
        reminder_id = await insert_reminder(db, "2025-03-10", "09:00", is_sent=True)

        response = await client.post(f"/notifications/{reminder_id}/send")

        assert response.status_code == 409

    async def test_duplicate_recipient_conflicts(self, client, login_as, admin_session):
        login_as(admin_session)
        body = {"email": "tax@example.com", "name": "담당자"}

        assert (await client.post("/email-recipients/", json=body)).status_code == 201
        assert (await client.post("/email-recipients/", json=body)).status_code == 409

    async def test_channel_requires_http_url(self, client, login_as, admin_session):
        login_as(admin_session)
        response = await client.post("/teams-channels/", json={"channel_name": "세무팀", "webhook_url": "not-a-url"})
        assert response.status_code == 422

    async def test_dashboard_summary(self, client, db, login_as, viewer_session):
        login_as(viewer_session)
        await insert_station(db)
        await insert_tax(db, "2000-01-01")
        await insert_tax(db, "2000-01-01", status="payment_completed")

        data = (await client.get("/dashboard/summary")).json()["data"]

        assert data["total_taxes"] == 2
        assert data["unpaid_taxes"] == 1
        assert data["overdue_taxes"] == 1
        assert data["stations_by_status"] == {"operating": 1}


class TestNotifyTest:

    async def test_teams_test_without_urls_is_bad_request(self, client, login_as, admin_session):
        login_as(admin_session)
        response = await client.post("/notify/teams-test", json={"webhookUrls": ["ftp://nope"]})
        assert response.status_code == 400

    async def test_teams_test_reports_tally(self, client, login_as, admin_session, webhook_transport, monkeypatch):
        login_as(admin_session)
        monkeypatch.setattr(webhook_service, "transport", webhook_transport)

        response = await client.post(
            "/notify/teams-test",
            json={"webhookUrls": ["https://h.example.com/ok", "https://h.example.com/ok", "https://h.example.com/fail"]},
        )

        assert response.status_code == 200
        assert response.json()["sent"] == 1
        assert response.json()["failed"] == 1
        assert len(webhook_transport.calls) == 2

    async def test_teams_test_malformed_url_is_counted(self, client, login_as, admin_session, webhook_transport, monkeypatch):
        login_as(admin_session)
        monkeypatch.setattr(webhook_service, "transport", webhook_transport)

        response = await client.post(
            "/notify/teams-test", json={"webhookUrls": ["https://h.example.com/ok", "http://a:b:c/"]}
        )

        assert response.status_code == 200
        assert response.json()["sent"] == 1
        assert response.json()["failed"] == 1

    async def test_email_test_unconfigured_is_unavailable(self, client, login_as, admin_session):
        login_as(admin_session)
        response = await client.post(
            "/notify/email-test", json={"to": ["a@example.com"], "subject": "테스트"}
        )
        assert response.status_code == 503


class TestJobs:

    async def test_dispatch_requires_cron_secret_when_set(self, client, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", "s3cret")

        denied = await client.post("/api/dispatch-notifications")
        by_header = await client.post("/api/dispatch-notifications", headers={"x-cron-key": "s3cret"})
        by_query = await client.get("/api/dispatch-notifications", params={"key": "s3cret"})

        assert denied.status_code == 401
        assert denied.json() == {"success": False, "error": "Unauthorized"}
        assert by_header.status_code == 200
        assert by_query.status_code == 200

    async def test_dispatch_without_secret_reports_counts(self, client):
        response = await client.post("/api/dispatch-notifications")

        body = response.json()
        assert body["success"] is True
        assert {"dispatched", "dispatchedManual", "dispatchedAuto", "now"} <= set(body)

    async def test_generate_reports_reason(self, client):
        response = await client.post("/api/generate-tax-reminders")

        assert response.json() == {"success": True, "created": 0, "skipped": 0, "reason": "no_active_schedules"}

    async def test_generate_logs_summary_once(self, client, db, caplog):
        caplog.set_level(logging.INFO, logger="tms")
        await insert_schedule(db, 3)
        await insert_tax(db, "2099-01-10")

        response = await client.post("/api/generate-tax-reminders")

        assert response.json()["created"] == 1
        summaries = [r for r in caplog.records if "Reminder generation finished" in r.getMessage()]
        assert [r.name for r in summaries] == ["tms.services.reminder_generator"]

    async def test_generate_rejects_wrong_key(self, client, monkeypatch):
        monkeypatch.setattr(settings, "cron_secret", "s3cret")
        response = await client.post("/api/generate-tax-reminders", headers={"x-cron-key": "nope"})
        assert response.status_code == 401


class TestAnalysisRoutes:

    async def test_station_image_required(self, client, login_as, admin_session):
        login_as(admin_session)
        response = await client.post(
            "/api/analyze-station-image", files={"image": ("empty.png", b"", "image/png")}
        )
        assert response.status_code == 400
        assert response.json()["error"] == "이미지가 제공되지 않았습니다."

    async def test_tax_image_unconfigured_still_succeeds(self, client, login_as, admin_session):
        login_as(admin_session)
        response = await client.post(
            "/api/analyze-tax-image", files={"image": ("notice.jpg", b"jpeg-bytes", "image/jpeg")}
        )
        assert response.status_code == 200
        assert response.json()["data"]["extracted_text"] == "AI 서비스에 연결할 수 없습니다."

    async def test_insights_unconfigured_is_unavailable(self, client, login_as, admin_session):
        login_as(admin_session)
        response = await client.post("/api/analyze-tax-insights")
        assert response.status_code == 503

    async def test_viewer_cannot_use_ai(self, client, login_as, viewer_session):
        login_as(viewer_session)
        response = await client.post("/api/analyze-tax-insights")
        assert response.status_code == 403
