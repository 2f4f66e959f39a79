"""Tests for the read-only catalog collaborator."""

import pytest

from app.catalog import SEED_ENTRIES, CatalogEntry, CatalogStore
from app.models import DisplayHint


def test_list_resources_preserves_catalog_order():
    store = CatalogStore()

    resources = store.list_resources()

    assert [ref.resource_id for ref in resources] == [entry.id for entry in SEED_ENTRIES]
    assert all(ref.display_hint == DisplayHint() for ref in resources)


def test_list_resources_applies_hint_and_kind():
    store = CatalogStore()
    hint = DisplayHint.preset("card")

    resources = store.list_resources(hint, kind="news")

    assert resources
    assert all(ref.display_hint.width == 400 for ref in resources)
    assert {ref.resource_id for ref in resources} == {
        entry.id for entry in SEED_ENTRIES if entry.kind == "news"
    }


def test_get_resource_unknown_id_raises():
    store = CatalogStore()

    with pytest.raises(KeyError):
        store.get_resource("missing")


def test_resource_identity_includes_dimensions():
    entry = CatalogEntry(id="x", title="X", cover_url="https://img/x.jpg")

    small = entry.to_resource(DisplayHint(width=150))
    large = entry.to_resource(DisplayHint(width=1200))

    assert small.identity != large.identity
    assert small.identity[0] == large.identity[0] == "https://img/x.jpg"
