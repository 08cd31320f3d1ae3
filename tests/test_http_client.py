"""Tests for the HTTP client retry behaviour."""

import httpx
import pytest

from bgg_collections.services.http_client import HttpClientService


def make_client(responses: list[httpx.Response], max_retries: int = 2) -> tuple[HttpClientService, list[httpx.Request]]:
    requests: list[httpx.Request] = []
    queue = list(responses)

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return queue.pop(0)

    client = HttpClientService(
        max_retries=max_retries,
        base_delay=0,
        rate_limit_delay=0,
        transport=httpx.MockTransport(handler),
    )
    return client, requests


@pytest.mark.asyncio
async def test_server_errors_are_retried() -> None:
    client, requests = make_client([httpx.Response(502), httpx.Response(200, text="<items/>")])

    async with client:
        response = await client.get("https://bgg.test/xmlapi2/thing", params={"id": "1"})

    assert response.status_code == 200
    assert len(requests) == 2


@pytest.mark.asyncio
async def test_accepted_is_returned_without_retry() -> None:
    client, requests = make_client([httpx.Response(202)])

    async with client:
        response = await client.get("https://bgg.test/xmlapi2/collection")

    assert response.status_code == 202
    assert len(requests) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [404, 429])
async def test_client_errors_are_raised_immediately(status_code: int) -> None:
    client, requests = make_client([httpx.Response(status_code)] * 3)

    async with client:
        with pytest.raises(httpx.HTTPStatusError):
            await client.get("https://bgg.test/xmlapi2/collection")

    assert len(requests) == 1


@pytest.mark.asyncio
async def test_gives_up_after_max_retries() -> None:
    client, requests = make_client([httpx.Response(500)] * 3, max_retries=1)

    async with client:
        with pytest.raises(httpx.HTTPStatusError):
            await client.get("https://bgg.test/xmlapi2/collection")

    assert len(requests) == 2
