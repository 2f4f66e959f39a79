"""Transports issuing the actual image requests."""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Protocol
from urllib.parse import unquote_to_bytes

import httpx

from ..errors import TransportError

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Issues one fetch attempt; raises :class:`TransportError` on failure."""

    async def probe(self, url: str) -> None: ...


def check_embedded_image(url: str) -> None:
    """Validate an inline ``data:`` reference without any network access.

    The header must declare an ``image/`` media type and the payload must
    decode. ``blob:`` references only resolve inside the page that minted
    them, so they always fail here.
    """

    if url.startswith("blob:"):
        raise TransportError(url, "blob references cannot be fetched")
    header, sep, payload = url[len("data:"):].partition(",")
    if not sep:
        raise TransportError(url, "malformed data reference")
    params = header.split(";")
    media_type = params[0].strip().lower()
    if not media_type.startswith("image/"):
        raise TransportError(url, f"unexpected content type {media_type!r}")
    if "base64" in (param.strip().lower() for param in params[1:]):
        try:
            data = base64.b64decode(unquote_to_bytes(payload), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise TransportError(url, "undecodable data payload") from exc
    else:
        data = unquote_to_bytes(payload)
    if not data:
        raise TransportError(url, "empty data payload")


class HttpxTransport:
    """Probe image URLs with a streamed GET through a shared client.

    Only the status line and headers are inspected; the body is never read.
    Inline ``data:`` and ``blob:`` references are checked locally.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        require_image: bool = True,
    ) -> None:
        self._client = http_client
        self._require_image = require_image

    async def probe(self, url: str) -> None:
        if url.startswith(("data:", "blob:")):
            check_embedded_image(url)
            return
        try:
            async with self._client.stream(
                "GET", url, follow_redirects=True
            ) as response:
                status = response.status_code
                content_type = response.headers.get("content-type", "")
        except httpx.HTTPError as exc:
            logger.debug("Image request for %s failed: %s", url, exc)
            raise TransportError(url, f"request failed: {exc}") from exc

        if status >= 400:
            logger.debug("Image request for %s returned %s", url, status)
            raise TransportError(url, f"unexpected status {status}")
        if self._require_image and not content_type.lower().startswith("image/"):
            logger.debug(
                "Image request for %s returned non-image content %r", url, content_type
            )
            raise TransportError(url, f"unexpected content type {content_type!r}")
