"""Build optimizing-proxy URLs for remote poster images."""

from __future__ import annotations

from urllib.parse import urlencode

DEFAULT_PROXY_URL = "https://wsrv.nl/"
DEFAULT_WIDTH = 600
DEFAULT_QUALITY = 85

_PASSTHROUGH_PREFIXES = ("data:", "blob:")


def is_proxiable(url: str) -> bool:
    """Return whether ``url`` points at a network origin the proxy can fetch."""

    if not url or url.startswith(_PASSTHROUGH_PREFIXES):
        return False
    lowered = url.lower()
    return lowered.startswith("http://") or lowered.startswith("https://")


def optimized_image_url(
    url: str,
    width: int = DEFAULT_WIDTH,
    height: int | None = None,
    quality: int = DEFAULT_QUALITY,
    *,
    proxy_url: str = DEFAULT_PROXY_URL,
) -> str:
    """Return the resized/re-encoded proxy URL for ``url``.

    Empty references yield an empty string and embedded or local references
    (``data:``, ``blob:``, relative paths) are returned unchanged.
    """

    if not url:
        return ""
    if not is_proxiable(url):
        return url

    params: list[tuple[str, str]] = [
        ("url", url),
        ("w", str(width)),
        ("q", str(quality)),
        ("af", "1"),
        ("il", "1"),
        ("fit", "cover"),
    ]
    if height:
        params.append(("h", str(height)))
    return f"{proxy_url}?{urlencode(params)}"
