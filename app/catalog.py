"""Read-only in-memory catalog of movies and news items."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from .models import DisplayHint, ResourceRef

EntryKind = Literal["movie", "news"]


@dataclass(frozen=True)
class CatalogEntry:
    """A catalog record carrying a cover image."""

    id: str
    title: str
    cover_url: str
    kind: EntryKind = "movie"
    year: int | None = None
    genres: tuple[str, ...] = field(default_factory=tuple)

    def to_resource(self, hint: DisplayHint | None = None) -> ResourceRef:
        return ResourceRef(
            resource_id=self.id,
            origin_url=self.cover_url,
            display_hint=hint or DisplayHint(),
            title=self.title,
        )


SEED_ENTRIES: tuple[CatalogEntry, ...] = (
    CatalogEntry(
        id="1",
        title="Dune: Part Two",
        cover_url="https://image.tmdb.org/t/p/original/1pdfLvkbY9ohJlCjQH2CZjjYVvJ.jpg",
        year=2024,
        genres=("Sci-Fi", "Drama"),
    ),
    CatalogEntry(
        id="2",
        title="Oppenheimer",
        cover_url="https://image.tmdb.org/t/p/original/8Gxv8gSFCU0XGDykEGv7zR1n2ua.jpg",
        year=2023,
        genres=("Drama",),
    ),
    CatalogEntry(
        id="3",
        title="Spider-Man: Across the Spider-Verse",
        cover_url="https://image.tmdb.org/t/p/original/8Vt6mWEReuy4Of61Lnj5Xj704m8.jpg",
        year=2023,
        genres=("Animation", "Action"),
    ),
    CatalogEntry(
        id="4",
        title="Parasite",
        cover_url="https://image.tmdb.org/t/p/original/7IiTTgloJzvGI1TAYymCfbfl3vT.jpg",
        year=2019,
        genres=("Drama", "Crime"),
    ),
    CatalogEntry(
        id="5",
        title="Spirited Away",
        cover_url="https://image.tmdb.org/t/p/original/39wmItIWsg5sZMyRUHLkWBcuVCM.jpg",
        year=2001,
        genres=("Animation",),
    ),
    CatalogEntry(
        id="6",
        title="The Dark Knight",
        cover_url="https://image.tmdb.org/t/p/original/qJ2tW6WMUDux911r6m7haRef0WH.jpg",
        year=2008,
        genres=("Action", "Crime"),
    ),
    CatalogEntry(
        id="n1",
        title="Festival line-up announced",
        cover_url="https://image.tmdb.org/t/p/original/xOMo8BRK7PfcJv9JCnx7s5hj0PX.jpg",
        kind="news",
    ),
    CatalogEntry(
        id="n2",
        title="Restored classics return to cinemas",
        cover_url="https://image.tmdb.org/t/p/original/rSPw7tgCH9c6NqICZef4kZjFOQ5.jpg",
        kind="news",
    ),
)


class CatalogStore:
    """Serves read-only snapshots of the catalog's poster resources."""

    def __init__(self, entries: tuple[CatalogEntry, ...] = SEED_ENTRIES):
        self._entries = tuple(entries)
        self._by_id = {entry.id: entry for entry in self._entries}

    def __len__(self) -> int:
        return len(self._entries)

    def entries(self, kind: EntryKind | None = None) -> list[CatalogEntry]:
        if kind is None:
            return list(self._entries)
        return [entry for entry in self._entries if entry.kind == kind]

    def list_resources(
        self,
        hint: DisplayHint | None = None,
        *,
        kind: EntryKind | None = None,
    ) -> list[ResourceRef]:
        """Return resource refs for every entry, in catalog order."""

        return [entry.to_resource(hint) for entry in self.entries(kind)]

    def get_resource(
        self, resource_id: str, hint: DisplayHint | None = None
    ) -> ResourceRef:
        entry = self._by_id.get(resource_id)
        if entry is None:
            raise KeyError(f"Unknown resource: {resource_id}")
        return entry.to_resource(hint)
