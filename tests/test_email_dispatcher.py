import httpx
import pytest

from quluub.services.email_dispatcher import EmailDispatcher

from tests.factories import EMAIL_API_URL


async def test_send_posts_json_with_bearer_token(email_dispatcher, email_recorder):
    sent = await email_dispatcher.send("wali@example.com", "Subject", "<p>Hi</p>")

    assert sent is True
    assert email_recorder.calls == [{
        "from": "Quluub <admin@quluub.com>",
        "to": "wali@example.com",
        "subject": "Subject",
        "html": "<p>Hi</p>",
    }]
    assert email_recorder.headers[0]["authorization"] == "Bearer test-key"


async def test_server_error_is_retried(email_dispatcher, email_recorder):
    responses = iter([httpx.Response(503), httpx.Response(200, json={"id": "ok"})])

    def handler(request):
        email_recorder.calls.append(request.url.path)
        return next(responses)

    email_dispatcher._transport = httpx.MockTransport(handler)

    assert await email_dispatcher.send("wali@example.com", "Subject", "<p>Hi</p>") is True
    assert len(email_recorder.calls) == 2


async def test_rate_limit_is_retried(email_dispatcher, email_recorder):
    email_recorder.fail_with = 429

    assert await email_dispatcher.send("wali@example.com", "Subject", "<p>Hi</p>") is False
    assert len(email_recorder.calls) == 3


@pytest.mark.parametrize("status", [400, 401, 422])
async def test_client_error_is_not_retried(email_dispatcher, email_recorder, status):
    email_recorder.fail_with = status

    assert await email_dispatcher.send("wali@example.com", "Subject", "<p>Hi</p>") is False
    assert len(email_recorder.calls) == 1


async def test_network_failure_gives_up_after_budget(email_dispatcher, email_recorder):
    email_recorder.network_down = True

    assert await email_dispatcher.send("wali@example.com", "Subject", "<p>Hi</p>") is False
    assert len(email_recorder.calls) == 3


async def test_timeout_is_retried():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ReadTimeout("timed out", request=request)

    dispatcher = EmailDispatcher(
        api_url=EMAIL_API_URL,
        max_attempts=2,
        retry_delay=0,
        transport=httpx.MockTransport(handler),
    )

    assert await dispatcher.send("wali@example.com", "Subject", "<p>Hi</p>") is False
    assert len(attempts) == 2
    assert "authorization" not in attempts[0].headers


async def test_disabled_without_endpoint(email_recorder):
    dispatcher = EmailDispatcher(api_url=None, transport=httpx.MockTransport(email_recorder.handler))

    assert dispatcher.enabled is False
    assert await dispatcher.send("wali@example.com", "Subject", "<p>Hi</p>") is False
    assert email_recorder.calls == []
