import httpx
import pytest

from photosku.core.errors import (
    CredentialError,
    RateLimitedError,
    RemoteClientError,
    RemoteServerError,
    RemoteUnavailableError,
)
from photosku.services.photoroom_client import PhotoRoomClient


def scripted(responses, seen):
    """MockTransport handler replaying responses (or exceptions) in order"""
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        request.read()
        outcome = queue.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    return handler


def make_client(responses, seen, sleeps, **kwargs):
    async def fake_sleep(delay):
        sleeps.append(delay)

    return PhotoRoomClient.from_settings(
        api_key=kwargs.pop("api_key", "test-key"),
        transport=httpx.MockTransport(scripted(responses, seen)),
        sleep=fake_sleep,
        max_retries=3,
        retry_base_delay=1.0,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_success_returns_bytes_unchanged():
    seen, sleeps = [], []
    client = make_client([httpx.Response(200, content=b"\xff\xd8edited")], seen, sleeps)

    result = await client.remove_background(b"raw-image")

    assert result == b"\xff\xd8edited"
    assert len(seen) == 1
    request = seen[0]
    assert request.method == "POST"
    assert request.headers["x-api-key"] == "test-key"
    body = request.content
    assert b"raw-image" in body
    assert b'name="export.format"' in body
    assert b'name="background.color"' in body
    assert sleeps == []


@pytest.mark.asyncio
async def test_fails_twice_then_succeeds():
    seen, sleeps = [], []
    client = make_client(
        [
            httpx.Response(500, json={"error": "boom"}),
            httpx.Response(429, json={"error": "slow down"}),
            httpx.Response(200, content=b"ok"),
        ],
        seen, sleeps,
    )

    assert await client.remove_background(b"img") == b"ok"
    assert len(seen) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_exhausted_retries_raise_last_error():
    seen, sleeps = [], []
    client = make_client(
        [
            httpx.Response(429, json={"error": "slow down"}),
            httpx.Response(503, json={"detail": "maintenance"}),
            httpx.Response(502, json={"error": {"message": "bad gateway"}}),
        ],
        seen, sleeps,
    )

    with pytest.raises(RemoteServerError) as exc_info:
        await client.remove_background(b"img")

    assert "bad gateway" in exc_info.value.message
    assert exc_info.value.status == 502
    assert len(seen) == 3
    # no sleep after the final attempt
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_rate_limit_is_classified():
    seen, sleeps = [], []
    client = make_client([httpx.Response(429, json={"error": "slow down"}) for _ in range(3)], seen, sleeps)

    with pytest.raises(RateLimitedError):
        await client.remove_background(b"img")
    assert len(seen) == 3


@pytest.mark.asyncio
async def test_unauthorized_is_not_retried():
    seen, sleeps = [], []
    client = make_client([httpx.Response(401, json={"error": "invalid key"})], seen, sleeps)

    with pytest.raises(CredentialError) as exc_info:
        await client.remove_background(b"img")

    assert exc_info.value.code == "unauthorized"
    assert len(seen) == 1
    assert sleeps == []


@pytest.mark.asyncio
async def test_client_error_is_not_retried():
    seen, sleeps = [], []
    client = make_client([httpx.Response(400, json={"error": "unsupported image"})], seen, sleeps)

    with pytest.raises(RemoteClientError) as exc_info:
        await client.remove_background(b"img")

    assert "unsupported image" in exc_info.value.message
    assert len(seen) == 1


@pytest.mark.asyncio
async def test_non_json_error_body():
    seen, sleeps = [], []
    client = make_client([httpx.Response(404, text="<html>not found</html>")], seen, sleeps)

    with pytest.raises(RemoteClientError) as exc_info:
        await client.remove_background(b"img")
    assert "404" in exc_info.value.message


@pytest.mark.asyncio
async def test_network_errors_are_retried():
    seen, sleeps = [], []
    request = httpx.Request("POST", "https://image-api.photoroom.com/v2/edit")
    client = make_client([httpx.ConnectError("refused", request=request) for _ in range(3)], seen, sleeps)

    with pytest.raises(RemoteUnavailableError):
        await client.remove_background(b"img")
    assert len(seen) == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_missing_api_key_fails_without_calling():
    seen, sleeps = [], []
    client = make_client([], seen, sleeps, api_key="")

    with pytest.raises(CredentialError):
        await client.remove_background(b"img")
    assert seen == []


@pytest.mark.asyncio
async def test_identical_inputs_are_not_cached():
    seen, sleeps = [], []
    client = make_client([httpx.Response(200, content=b"a"), httpx.Response(200, content=b"b")], seen, sleeps)

    await client.remove_background(b"same")
    await client.remove_background(b"same")
    assert len(seen) == 2


def test_backoff_doubles():
    client = PhotoRoomClient(api_key="k", retry_base_delay=0.5)
    assert [client.backoff_delay(n) for n in (1, 2, 3)] == [0.5, 1.0, 2.0]
