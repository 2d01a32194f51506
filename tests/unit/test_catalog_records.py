"""Unit tests for the catalog record adapter."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from clawdtm.catalog.records import CatalogRecord, parse_page, parse_timestamp
from clawdtm.errors import CatalogFetchError, RecordValidationError


def test_current_payload_shape(item) -> None:
    record = CatalogRecord.from_payload(item("web-search", category="Web"))
    assert record.external_id == "ext-web-search"
    assert record.name == "Web Search"
    assert record.description == "The web-search skill"
    assert record.author == "alice"
    assert record.author_handle == "alice"
    assert (record.downloads, record.stars, record.installs) == (10, 1, 5)
    assert record.tags == ("latest", "search")
    assert record.version == "1.0.0"
    assert record.category == "web"
    assert record.external_created_at == datetime.fromtimestamp(1736900000, tz=timezone.utc)


def test_legacy_payload_shape() -> None:
    record = CatalogRecord.from_payload(
        {
            "_id": "legacy-1",
            "slug": "notes",
            "name": "Notes",
            "description": "Take notes",
            "author": "bob",
            "stats": {"downloads": 3, "installs": 2},
            "tags": ["Notes", "notes", "todo"],
            "latestVersion": "0.3.0",
            "nix": True,
            "updatedAt": "2025-01-02T03:04:05Z",
        }
    )
    assert record.external_id == "legacy-1"
    assert record.name == "Notes"
    assert record.author == "bob"
    assert record.author_handle is None
    assert record.installs == 2
    assert record.tags == ("notes", "todo")
    assert record.version == "0.3.0"
    assert record.has_nix is True
    assert record.external_updated_at == datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def test_installs_prefers_all_time_then_plain_then_current() -> None:
    def installs(stats: dict) -> int:
        return CatalogRecord.from_payload({"slug": "s", "stats": stats}).installs

    assert installs({"installs": 3, "installsAllTime": 9, "installsCurrent": 1}) == 9
    assert installs({"installs": 3, "installsCurrent": 1}) == 3
    assert installs({"installsCurrent": 1}) == 1
    assert installs({}) == 0


def test_minimal_record_falls_back_to_slug() -> None:
    record = CatalogRecord.from_payload({"slug": "  bare  "})
    assert record.slug == "bare"
    assert record.name == "bare"
    assert record.external_id == "bare"
    assert record.author is None
    assert record.tags == ()
    assert record.category is None


@pytest.mark.parametrize(
    "payload",
    [
        {"name": "no slug"},
        {"slug": "   "},
        {"slug": "neg", "stats": {"downloads": -1}},
        {"slug": "bad-tags", "tags": 17},
    ],
)
def test_invalid_records_raise(payload: dict) -> None:
    with pytest.raises(RecordValidationError):
        CatalogRecord.from_payload(payload)


def test_invalid_record_error_carries_slug() -> None:
    with pytest.raises(RecordValidationError) as exc_info:
        CatalogRecord.from_payload({"slug": "neg", "stats": {"stars": -5}})
    assert exc_info.value.slug == "neg"


def test_non_object_record_raises() -> None:
    with pytest.raises(RecordValidationError, match="must be an object"):
        CatalogRecord.from_payload(["slug"])


@pytest.mark.parametrize("value", [None, "", 0, -5, True, "not a date", [], {}])
def test_parse_timestamp_rejects_garbage(value: object) -> None:
    assert parse_timestamp(value) is None


def test_parse_timestamp_naive_iso_is_utc() -> None:
    assert parse_timestamp("2025-06-01T10:00:00") == datetime(2025, 6, 1, 10, tzinfo=timezone.utc)
    assert parse_timestamp("2025-06-01T12:00:00+02:00") == datetime(2025, 6, 1, 10, tzinfo=timezone.utc)


def test_parse_page_envelopes() -> None:
    page = parse_page({"skills": [{"slug": "a"}], "cursor": "c1", "hasMore": True})
    assert page.records == [{"slug": "a"}]
    assert page.next_cursor == "c1"
    assert page.has_more is True

    page = parse_page({"data": [], "nextCursor": "x"})
    assert page.has_more is True
    assert page.next_cursor == "x"

    page = parse_page({"items": [{"slug": "b"}], "hasMore": True})
    assert page.has_more is False
    assert page.next_cursor is None

    assert parse_page({}).records == []


@pytest.mark.parametrize("payload", [[], "text", {"skills": {"slug": "a"}}])
def test_parse_page_rejects_malformed_envelopes(payload: object) -> None:
    with pytest.raises(CatalogFetchError):
        parse_page(payload)
