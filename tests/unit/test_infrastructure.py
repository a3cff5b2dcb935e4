"""Unit tests for the infrastructure layer (HTTP client and email providers)."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from config import EmailSettings
from infrastructure.email.console import ConsoleEmailProvider
from infrastructure.email.protocol import EmailKind
from infrastructure.email.retry import RetryingEmailProvider
from infrastructure.email.zeptomail import ZeptoMailProvider
from infrastructure.http_client import HttpClient


def _template_data(**overrides):
    data = {
        "name": "Ada",
        "link": "https://telo.example/verify-email/confirm/" + "a" * 64,
        "expires_in": "24 hours",
    }
    data.update(overrides)
    return data


# ── HttpClient ────────────────────────────────────────────────────────────────


class TestHttpClient:
    async def test_post_delegates_to_httpx(self, mocker):
        client = HttpClient()
        fake_resp = MagicMock(status_code=200)
        mocker.patch.object(client._client, "post", AsyncMock(return_value=fake_resp))
        resp = await client.post("https://example.com", json={})
        assert resp.status_code == 200
        await client.aclose()

    async def test_post_propagates_exception(self, mocker):
        client = HttpClient()
        mocker.patch.object(
            client._client, "post", AsyncMock(side_effect=httpx.ConnectError("down"))
        )
        with pytest.raises(httpx.ConnectError):
            await client.post("https://example.com")
        await client.aclose()


# ── ZeptoMailProvider ─────────────────────────────────────────────────────────


class TestZeptoMailProvider:
    def _provider(self, http, token="secret-key"):
        return ZeptoMailProvider(
            EmailSettings(zepto_api_token=token), http, app_name="Telo Directory"
        )

    async def test_sends_payload_returns_true(self):
        http = MagicMock()
        http.post = AsyncMock(return_value=MagicMock(status_code=201))
        provider = self._provider(http)

        assert await provider.send(EmailKind.VERIFICATION, "a@test.com", _template_data())

        _, kwargs = http.post.call_args
        assert kwargs["headers"]["Authorization"] == "Zoho-enczapikey secret-key"
        payload = kwargs["json"]
        assert payload["to"][0]["email_address"] == {"address": "a@test.com", "name": "Ada"}
        assert payload["subject"] == "Verify your email address - Telo Directory"
        assert "/verify-email/confirm/" in payload["textbody"]

    async def test_prefixed_key_kept(self):
        http = MagicMock()
        http.post = AsyncMock(return_value=MagicMock(status_code=200))
        provider = self._provider(http, token="Zoho-enczapikey abc")
        await provider.send(EmailKind.PASSWORD_RESET, "a@test.com", _template_data())
        assert http.post.call_args.kwargs["headers"]["Authorization"] == "Zoho-enczapikey abc"

    async def test_returns_false_on_non_2xx(self):
        http = MagicMock()
        http.post = AsyncMock(return_value=MagicMock(status_code=500, text="boom"))
        assert not await self._provider(http).send(
            EmailKind.VERIFICATION, "a@test.com", _template_data()
        )

    async def test_returns_false_on_http_error(self):
        http = MagicMock()
        http.post = AsyncMock(side_effect=httpx.ReadTimeout("slow"))
        assert not await self._provider(http).send(
            EmailKind.VERIFICATION, "a@test.com", _template_data()
        )

    async def test_returns_false_when_token_empty(self):
        http = MagicMock()
        http.post = AsyncMock()
        assert not await self._provider(http, token="").send(
            EmailKind.VERIFICATION, "a@test.com", _template_data()
        )
        http.post.assert_not_called()

    @pytest.mark.parametrize("kind", list(EmailKind))
    def test_every_kind_renders(self, kind):
        provider = self._provider(MagicMock())
        data = _template_data(current_email="old@test.com", new_email="new@test.com")
        subject, html_body, text_body = provider.render(kind, data)
        assert subject.endswith("- Telo Directory")
        assert data["link"] in html_body
        assert data["link"] in text_body
        assert "24 hours" in text_body

    def test_html_is_escaped(self):
        provider = self._provider(MagicMock())
        _, html_body, _ = provider.render(
            EmailKind.VERIFICATION, _template_data(name="<script>x</script>")
        )
        assert "<script>x</script>" not in html_body


# ── RetryingEmailProvider ─────────────────────────────────────────────────────


class TestRetryingEmailProvider:
    async def test_first_success_no_sleep(self):
        inner = MagicMock()
        inner.send = AsyncMock(return_value=True)
        sleep = AsyncMock()
        provider = RetryingEmailProvider(inner, sleep=sleep)

        assert await provider.send(EmailKind.VERIFICATION, "a@test.com", {})
        assert inner.send.await_count == 1
        sleep.assert_not_awaited()

    async def test_backoff_between_attempts(self):
        inner = MagicMock()
        inner.send = AsyncMock(side_effect=[False, RuntimeError("smtp"), True])
        sleep = AsyncMock()
        provider = RetryingEmailProvider(inner, max_attempts=3, base_delay=2.0, sleep=sleep)

        assert await provider.send(EmailKind.VERIFICATION, "a@test.com", {})
        assert [c.args[0] for c in sleep.await_args_list] == [2.0, 4.0]

    async def test_gives_up_after_max_attempts(self):
        inner = MagicMock()
        inner.send = AsyncMock(return_value=False)
        sleep = AsyncMock()
        provider = RetryingEmailProvider(inner, max_attempts=3, sleep=sleep)

        assert not await provider.send(EmailKind.VERIFICATION, "a@test.com", {})
        assert inner.send.await_count == 3
        assert sleep.await_count == 2

    async def test_exception_on_last_attempt_returns_false(self):
        inner = MagicMock()
        inner.send = AsyncMock(side_effect=RuntimeError("smtp down"))
        sleep = AsyncMock()
        provider = RetryingEmailProvider(inner, max_attempts=3, base_delay=1.0, sleep=sleep)

        assert await provider.send(EmailKind.PASSWORD_RESET, "a@test.com", {}) is False
        assert inner.send.await_count == 3
        assert [c.args[0] for c in sleep.await_args_list] == [1.0, 2.0]

    async def test_single_attempt_never_sleeps(self):
        inner = MagicMock()
        inner.send = AsyncMock(return_value=False)
        sleep = AsyncMock()
        provider = RetryingEmailProvider(inner, max_attempts=1, sleep=sleep)

        assert await provider.send(EmailKind.VERIFICATION, "a@test.com", {}) is False
        sleep.assert_not_awaited()


# ── ConsoleEmailProvider ──────────────────────────────────────────────────────


class TestConsoleEmailProvider:
    async def test_records_and_succeeds(self):
        provider = ConsoleEmailProvider()
        assert await provider.send(EmailKind.EMAIL_CHANGE, "a@test.com", _template_data())
        kind, to_email, data = provider.outbox[0]
        assert (kind, to_email) == (EmailKind.EMAIL_CHANGE, "a@test.com")
        assert data["link"].startswith("https://")

    async def test_outbox_keeps_only_recent_messages(self):
        provider = ConsoleEmailProvider(keep=5)
        for i in range(20):
            await provider.send(EmailKind.VERIFICATION, f"u{i}@test.com", _template_data())
        assert len(provider.outbox) == 5
        assert [to for _, to, _ in provider.outbox] == [f"u{i}@test.com" for i in range(15, 20)]
