import asyncio
import copy
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from .db import utcnow
from .defaults import DEFAULT_CONTENT
from .errors import ConfigurationError, NotFound, ValidationError
from .models import ContentSection

logger = logging.getLogger(__name__)

SECTION_NAMES = ("hero", "about", "skills", "projects", "experience", "contact", "gallery")

Payload = Dict[str, Any]


def is_valid_section(name: str) -> bool:
    return name in SECTION_NAMES


def _check_write(name: str, payload: Any) -> None:
    if not is_valid_section(name):
        raise ValidationError(f"Unknown section: {name}")
    if not isinstance(payload, dict):
        raise ValidationError("Invalid payload. Expected a JSON object.")


def _merge_names(stored) -> List[str]:
    names = list(SECTION_NAMES)
    names.extend(sorted(n for n in stored if n not in SECTION_NAMES))
    return names


class SectionStore:
    """Maps each allowed section name to one opaque JSON object. Writes replace the whole payload."""

    kind = "abstract"

    async def list_sections(self) -> List[str]:
        raise NotImplementedError

    async def get_section(self, name: str) -> Payload:
        raise NotImplementedError

    async def has_section(self, name: str) -> bool:
        raise NotImplementedError

    async def put_section(self, name: str, payload: Payload) -> None:
        raise NotImplementedError


class FileSectionStore(SectionStore):
    kind = "file"

    def __init__(self, path: Path):
        self.path = Path(path)
        self._cache: Optional[Dict[str, Payload]] = None
        # serialises read-modify-write of the whole file
        self._write_lock = asyncio.Lock()

    async def _load(self) -> Dict[str, Payload]:
        if self._cache is None:
            data = await asyncio.to_thread(self._read_file)
            # a write may have landed while the file was being read
            if self._cache is None:
                self._cache = data
        return self._cache

    def _read_file(self) -> Dict[str, Payload]:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except FileNotFoundError:
            logger.info("Content file %s does not exist yet, starting empty", self.path)
            return {}
        except (OSError, ValueError):
            logger.warning("⚠️ Could not read %s, using empty store", self.path, exc_info=True)
            return {}
        if not isinstance(data, dict):
            logger.warning("⚠️ %s does not hold a JSON object, using empty store", self.path)
            return {}
        return data

    def _write_file(self, data: Dict[str, Payload]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".content-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    async def list_sections(self) -> List[str]:
        return _merge_names(await self._load())

    async def has_section(self, name: str) -> bool:
        return name in await self._load()

    async def get_section(self, name: str) -> Payload:
        if not is_valid_section(name):
            raise NotFound("Section not found")
        store = await self._load()
        if name not in store:
            raise NotFound("Content not found")
        return copy.deepcopy(store[name])

    async def put_section(self, name: str, payload: Payload) -> None:
        _check_write(name, payload)
        async with self._write_lock:
            store = dict(await self._load())
            store[name] = copy.deepcopy(payload)
            await asyncio.to_thread(self._write_file, store)
            self._cache = store


class DatabaseSectionStore(SectionStore):
    kind = "database"

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    async def list_sections(self) -> List[str]:
        async with self._session_factory() as session:
            result = await session.exec(select(ContentSection.name))
            return _merge_names(result.all())

    async def _get_row(self, session, name: str) -> Optional[ContentSection]:
        result = await session.exec(select(ContentSection).where(ContentSection.name == name))
        return result.first()

    async def has_section(self, name: str) -> bool:
        async with self._session_factory() as session:
            return await self._get_row(session, name) is not None

    async def get_section(self, name: str) -> Payload:
        if not is_valid_section(name):
            raise NotFound("Section not found")
        async with self._session_factory() as session:
            row = await self._get_row(session, name)
        if row is None:
            raise NotFound("Content not found")
        return row.payload

    async def put_section(self, name: str, payload: Payload) -> None:
        _check_write(name, payload)
        now = utcnow()
        async with self._session_factory() as session:
            dialect = session.bind.dialect.name
            if dialect in ("postgresql", "sqlite"):
                insert = pg_insert if dialect == "postgresql" else sqlite_insert
                stmt = insert(ContentSection.__table__).values(
                    name=name, payload=payload, created_at=now, updated_at=now,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=["name"],
                    set_={"payload": stmt.excluded.payload, "updated_at": stmt.excluded.updated_at},
                )
                await session.exec(stmt)
            else:
                row = await self._get_row(session, name)
                if row is None:
                    row = ContentSection(name=name, payload=payload, created_at=now, updated_at=now)
                else:
                    row.payload = payload
                    row.updated_at = now
                session.add(row)
            await session.commit()


def create_section_store(settings, session_factory: Optional[sessionmaker]) -> SectionStore:
    if settings.uses_database_content:
        if session_factory is None:
            raise ConfigurationError("CONTENT_STORE=database requires DATABASE_URL")
        return DatabaseSectionStore(session_factory)
    return FileSectionStore(settings.content_file)


# --- Seeding ---
@dataclass
class SeedResult:
    inserted: int = 0
    updated: int = 0


async def seed_sections(
    store: SectionStore,
    defaults: Mapping[str, Payload] = DEFAULT_CONTENT,
    force: bool = False,
) -> SeedResult:
    result = SeedResult()
    for name in SECTION_NAMES:
        payload = defaults.get(name)
        if payload is None:
            continue
        exists = await store.has_section(name)
        if exists and not force:
            continue
        await store.put_section(name, payload)
        if exists:
            result.updated += 1
        else:
            result.inserted += 1

    if result.inserted or result.updated:
        logger.info("✅ Content synced. Inserted: %d, Updated: %d", result.inserted, result.updated)
    else:
        logger.info("Content already up to date.")
    return result
