import asyncio
import json

import pytest
from sqlmodel import select

from portfolio_api.db import utcnow
from portfolio_api.defaults import DEFAULT_CONTENT
from portfolio_api.errors import NotFound, ValidationError
from portfolio_api.models import ContentSection
from portfolio_api.sections import (
    SECTION_NAMES,
    DatabaseSectionStore,
    FileSectionStore,
    seed_sections,
)

from .conftest import run_with_db

SAMPLE = {
    "title": "Hello",
    "items": [{"name": "a", "tags": ["x", "y"]}, {"name": "b", "count": 3}],
    "nested": {"flag": True, "value": None, "ratio": 0.5},
}


@pytest.fixture
def content_file(tmp_path):
    return tmp_path / "data" / "content.json"


# ============================================================================
# FILE STORE
# ============================================================================

@pytest.mark.parametrize("name", SECTION_NAMES)
def test_file_store_round_trip(content_file, name):
    store = FileSectionStore(content_file)
    payload = dict(SAMPLE, section=name)

    asyncio.run(store.put_section(name, payload))

    assert asyncio.run(store.get_section(name)) == payload
    # a fresh store reads what was persisted
    assert asyncio.run(FileSectionStore(content_file).get_section(name)) == payload


def test_file_store_writes_whole_mapping(content_file):
    store = FileSectionStore(content_file)
    asyncio.run(store.put_section("hero", {"greeting": "Hi"}))
    asyncio.run(store.put_section("about", {"title": "About"}))

    on_disk = json.loads(content_file.read_text(encoding="utf-8"))

    assert on_disk == {"hero": {"greeting": "Hi"}, "about": {"title": "About"}}


def test_file_store_overwrites_without_merging(content_file):
    store = FileSectionStore(content_file)
    asyncio.run(store.put_section("hero", {"greeting": "Hi", "name": "Old"}))
    asyncio.run(store.put_section("hero", {"greeting": "Hello"}))

    assert asyncio.run(store.get_section("hero")) == {"greeting": "Hello"}


def test_file_store_returns_copies(content_file):
    store = FileSectionStore(content_file)
    asyncio.run(store.put_section("skills", {"items": [1, 2]}))

    fetched = asyncio.run(store.get_section("skills"))
    fetched["items"].append(3)

    assert asyncio.run(store.get_section("skills")) == {"items": [1, 2]}


def test_list_sections_includes_allow_list_before_any_write(content_file):
    store = FileSectionStore(content_file)

    assert asyncio.run(store.list_sections()) == list(SECTION_NAMES)


def test_list_sections_includes_extra_stored_names(content_file):
    content_file.parent.mkdir(parents=True)
    content_file.write_text(json.dumps({"hero": {}, "legacy": {"x": 1}}), encoding="utf-8")

    names = asyncio.run(FileSectionStore(content_file).list_sections())

    assert names[: len(SECTION_NAMES)] == list(SECTION_NAMES)
    assert "legacy" in names


def test_unknown_section_rejected(content_file):
    store = FileSectionStore(content_file)

    with pytest.raises(NotFound):
        asyncio.run(store.get_section("nonexistent"))
    with pytest.raises(ValidationError):
        asyncio.run(store.put_section("nonexistent", {}))
    assert not content_file.exists()


@pytest.mark.parametrize("payload", [[1, 2], "text", 42, None])
def test_non_object_payload_rejected(content_file, payload):
    store = FileSectionStore(content_file)

    with pytest.raises(ValidationError):
        asyncio.run(store.put_section("hero", payload))


def test_missing_section_is_not_found(content_file):
    with pytest.raises(NotFound):
        asyncio.run(FileSectionStore(content_file).get_section("gallery"))


def test_file_store_overlapping_writes_keep_both_sections(content_file):
    store = FileSectionStore(content_file)

    async def scenario():
        await asyncio.gather(
            store.put_section("hero", {"greeting": "Hi"}),
            store.put_section("about", {"title": "About"}),
            store.put_section("skills", {"items": ["Python"]}),
        )

    asyncio.run(scenario())

    fresh = FileSectionStore(content_file)
    for name in ("hero", "about", "skills"):
        assert asyncio.run(store.has_section(name))
        assert asyncio.run(fresh.has_section(name))


def test_corrupt_file_behaves_as_empty_store(content_file):
    content_file.parent.mkdir(parents=True)
    content_file.write_text("{not json", encoding="utf-8")
    store = FileSectionStore(content_file)

    assert asyncio.run(store.has_section("hero")) is False
    asyncio.run(store.put_section("hero", {"greeting": "Hi"}))
    assert json.loads(content_file.read_text(encoding="utf-8")) == {"hero": {"greeting": "Hi"}}


# ============================================================================
# DATABASE STORE
# ============================================================================

def test_database_store_round_trip(sqlite_url):
    async def scenario(session_factory):
        store = DatabaseSectionStore(session_factory)
        for name in SECTION_NAMES:
            await store.put_section(name, dict(SAMPLE, section=name))
        return {name: await store.get_section(name) for name in SECTION_NAMES}

    fetched = run_with_db(sqlite_url, scenario)

    assert fetched == {name: dict(SAMPLE, section=name) for name in SECTION_NAMES}


def test_database_store_upsert_keeps_one_row(sqlite_url):
    async def scenario(session_factory):
        store = DatabaseSectionStore(session_factory)
        await store.put_section("hero", {"greeting": "Hi", "name": "Old"})
        async with session_factory() as session:
            first = (await session.exec(select(ContentSection))).one()
        await store.put_section("hero", {"greeting": "Hello"})
        async with session_factory() as session:
            rows = (await session.exec(select(ContentSection))).all()
        return first, rows

    first, rows = run_with_db(sqlite_url, scenario)

    assert len(rows) == 1
    assert rows[0].payload == {"greeting": "Hello"}
    assert rows[0].updated_at >= first.updated_at


def test_database_store_records_timestamps(sqlite_url):
    async def scenario(session_factory):
        store = DatabaseSectionStore(session_factory)
        await store.put_section("about", {"title": "About"})
        await store.put_section("about", {"title": "About me"})
        async with session_factory() as session:
            return (await session.exec(select(ContentSection))).one()

    row = run_with_db(sqlite_url, scenario)

    assert row.payload == {"title": "About me"}
    assert row.created_at is not None
    assert row.updated_at >= row.created_at


def test_utcnow_is_timezone_aware():
    assert utcnow().utcoffset() is not None
    assert utcnow().utcoffset().total_seconds() == 0


def test_database_store_allow_list(sqlite_url):
    async def scenario(session_factory):
        store = DatabaseSectionStore(session_factory)
        names = await store.list_sections()
        with pytest.raises(NotFound):
            await store.get_section("about")
        with pytest.raises(NotFound):
            await store.get_section("nonexistent")
        with pytest.raises(ValidationError):
            await store.put_section("nonexistent", {})
        with pytest.raises(ValidationError):
            await store.put_section("about", ["not", "an", "object"])
        return names

    assert run_with_db(sqlite_url, scenario) == list(SECTION_NAMES)


# ============================================================================
# SEEDING
# ============================================================================

def test_seeding_is_idempotent(content_file):
    store = FileSectionStore(content_file)

    first = asyncio.run(seed_sections(store))
    second = asyncio.run(seed_sections(store))

    assert (first.inserted, first.updated) == (len(SECTION_NAMES), 0)
    assert (second.inserted, second.updated) == (0, 0)


def test_seeding_keeps_edited_sections(content_file):
    store = FileSectionStore(content_file)
    asyncio.run(store.put_section("hero", {"greeting": "Custom"}))

    result = asyncio.run(seed_sections(store))

    assert result.inserted == len(SECTION_NAMES) - 1
    assert asyncio.run(store.get_section("hero")) == {"greeting": "Custom"}


def test_forced_seeding_overwrites_every_section_once(content_file):
    store = FileSectionStore(content_file)
    asyncio.run(seed_sections(store))
    asyncio.run(store.put_section("hero", {"greeting": "Custom"}))

    result = asyncio.run(seed_sections(store, force=True))

    assert (result.inserted, result.updated) == (0, len(SECTION_NAMES))
    assert asyncio.run(store.get_section("hero")) == DEFAULT_CONTENT["hero"]


def test_seeding_database_store(sqlite_url):
    async def scenario(session_factory):
        store = DatabaseSectionStore(session_factory)
        first = await seed_sections(store)
        second = await seed_sections(store)
        forced = await seed_sections(store, force=True)
        projects = await store.get_section("projects")
        return first, second, forced, projects

    first, second, forced, projects = run_with_db(sqlite_url, scenario)

    assert first.inserted == len(SECTION_NAMES)
    assert (second.inserted, second.updated) == (0, 0)
    assert (forced.inserted, forced.updated) == (0, len(SECTION_NAMES))
    assert projects == DEFAULT_CONTENT["projects"]


def test_defaults_cover_every_section():
    assert set(DEFAULT_CONTENT) == set(SECTION_NAMES)
    assert all(isinstance(payload, dict) for payload in DEFAULT_CONTENT.values())
