"""Tests for the httpx-backed image transport."""

from __future__ import annotations

import base64

import httpx
import pytest

from app.errors import TransportError
from app.services.transport import HttpxTransport


def image_response(status: int = 200, content_type: str = "image/jpeg") -> httpx.Response:
    return httpx.Response(status, headers={"content-type": content_type}, content=b"\xff\xd8")


@pytest.mark.anyio("asyncio")
async def test_probe_accepts_image_responses() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return image_response()

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        await HttpxTransport(client).probe("https://img.example.com/ok.jpg")

    assert requests[0].method == "GET"


@pytest.mark.anyio("asyncio")
async def test_probe_follows_redirects() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/old.jpg":
            return httpx.Response(302, headers={"location": "https://img.example.com/new.jpg"})
        return image_response()

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        await HttpxTransport(client).probe("https://img.example.com/old.jpg")


@pytest.mark.anyio("asyncio")
async def test_probe_rejects_error_status() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(TransportError, match="unexpected status 404"):
            await HttpxTransport(client).probe("https://img.example.com/missing.jpg")


@pytest.mark.anyio("asyncio")
async def test_probe_rejects_non_image_content_when_required() -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return image_response(content_type="text/html; charset=utf-8")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(TransportError):
            await HttpxTransport(client).probe("https://img.example.com/page")
        await HttpxTransport(client, require_image=False).probe(
            "https://img.example.com/page"
        )


@pytest.mark.anyio("asyncio")
async def test_probe_wraps_network_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(TransportError) as excinfo:
            await HttpxTransport(client).probe("https://down.example.com/a.jpg")

    assert excinfo.value.url == "https://down.example.com/a.jpg"
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)


@pytest.mark.anyio("asyncio")
async def test_embedded_images_are_checked_locally() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return image_response()

    png = base64.b64encode(b"\x89PNG\r\n\x1a\n").decode()
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        transport = HttpxTransport(client)
        await transport.probe(f"data:image/png;base64,{png}")
        await transport.probe("data:image/svg+xml,%3Csvg%2F%3E")

        for url in (
            "data:text/html,<p>hi</p>",
            "data:image/png;base64,***",
            "data:image/png;base64",
            "data:image/gif;base64,",
            "blob:https://example.com/1c9d",
        ):
            with pytest.raises(TransportError):
                await transport.probe(url)

    assert requests == []
