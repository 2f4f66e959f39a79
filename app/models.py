"""Pydantic models describing poster resources and scan results."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .services.url_transform import DEFAULT_QUALITY, DEFAULT_WIDTH, optimized_image_url

PresetName = Literal["hero", "detail", "card", "category", "rank", "backdrop"]


class DisplayHint(BaseModel):
    """Dimensions and quality requested from the image proxy."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(default=DEFAULT_WIDTH, ge=1)
    height: int | None = Field(default=None, ge=1)
    quality: int = Field(default=DEFAULT_QUALITY, ge=1, le=100)

    @classmethod
    def preset(cls, name: PresetName) -> "DisplayHint":
        """Return the hint used by one of the standard poster placements."""

        return DISPLAY_PRESETS[name]


DISPLAY_PRESETS: dict[str, DisplayHint] = {
    "hero": DisplayHint(width=1200),
    "detail": DisplayHint(width=800),
    "card": DisplayHint(width=400),
    "category": DisplayHint(width=350),
    "rank": DisplayHint(width=150),
    "backdrop": DisplayHint(width=100),
}


class ResourceRef(BaseModel):
    """Immutable reference to a remote poster and how it will be shown."""

    model_config = ConfigDict(frozen=True)

    resource_id: str
    origin_url: str = ""
    display_hint: DisplayHint = Field(default_factory=DisplayHint)
    title: str | None = None

    @property
    def identity(self) -> tuple[str, int, int | None]:
        """Return the key identifying this resource: origin plus dimensions."""

        return (self.origin_url, self.display_hint.width, self.display_hint.height)

    def optimized_url(self, proxy_url: str) -> str:
        hint = self.display_hint
        return optimized_image_url(
            self.origin_url,
            hint.width,
            hint.height,
            hint.quality,
            proxy_url=proxy_url,
        )

    def to_payload(self, proxy_url: str) -> dict[str, object]:
        """Return the JSON representation served by the resources API."""

        return {
            "id": self.resource_id,
            "title": self.title,
            "originUrl": self.origin_url,
            "optimizedUrl": self.optimized_url(proxy_url),
            "width": self.display_hint.width,
            "height": self.display_hint.height,
            "quality": self.display_hint.quality,
        }


class ScanStatus(str, Enum):
    PENDING = "pending"
    TESTING = "testing"
    OK = "ok"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ScanStatus.OK, ScanStatus.ERROR)


class ScanEntry(BaseModel):
    """Status of a single resource within a scan run."""

    resource_id: str
    url: str
    title: str | None = None
    status: ScanStatus = ScanStatus.PENDING
    error: str | None = None

    def to_payload(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "id": self.resource_id,
            "url": self.url,
            "status": self.status.value,
        }
        if self.title:
            payload["title"] = self.title
        if self.error:
            payload["error"] = self.error
        return payload


class ScanEvent(BaseModel):
    """A published status change together with a snapshot of the run."""

    entry: ScanEntry
    index: int
    entries: tuple[ScanEntry, ...]

    @property
    def error_count(self) -> int:
        return sum(1 for entry in self.entries if entry.status is ScanStatus.ERROR)

    def to_payload(self) -> dict[str, object]:
        return {
            "index": self.index,
            "entry": self.entry.to_payload(),
            "errorCount": self.error_count,
        }
