import asyncio
import base64
import enum
import logging
import mimetypes
import os
import random
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

import boto3
from botocore.exceptions import ClientError
from fastapi import UploadFile
from sqlalchemy import delete
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from .db import utcnow
from .errors import ConfigurationError, InvalidFile, NotFound, ValidationError
from .models import UploadedAsset

logger = logging.getLogger(__name__)

SAFE_FILENAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,200}$")
ASSET_ID = re.compile(r"^[0-9a-f]{32}$")
EXTENSION = re.compile(r"^\.[a-z0-9]{1,9}$")


class UploadStrategy(str, enum.Enum):
    S3 = "s3"
    DATABASE = "database"
    DISK = "disk"


def select_upload_strategy(settings) -> UploadStrategy:
    """Pick the medium for uploaded images once per process: explicit choice, object storage, serverless, disk."""
    if settings.upload_strategy != "auto":
        strategy = UploadStrategy(settings.upload_strategy)
    elif settings.has_object_storage:
        strategy = UploadStrategy.S3
    elif settings.serverless:
        strategy = UploadStrategy.DATABASE
    else:
        strategy = UploadStrategy.DISK

    if strategy is UploadStrategy.S3 and not settings.has_object_storage:
        raise ConfigurationError("Object storage uploads need S3_BUCKET, S3_ACCESS_KEY_ID and S3_SECRET_ACCESS_KEY")
    if strategy is UploadStrategy.DATABASE and not settings.database_url:
        raise ConfigurationError("Database uploads need DATABASE_URL")
    return strategy


# --- Validation ---
@dataclass
class IncomingFile:
    original_name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class ResolvedAsset:
    mime_type: Optional[str] = None
    data: Optional[bytes] = None
    path: Optional[Path] = None
    redirect_url: Optional[str] = None


@dataclass
class AssetInfo:
    reference: str
    filename: str
    size: int
    mime_type: Optional[str] = None
    created_at: Optional[datetime] = None


async def validate_upload(upload: UploadFile, max_bytes: int) -> IncomingFile:
    content_type = (upload.content_type or "").lower()
    if not content_type.startswith("image/"):
        raise InvalidFile("Only image files are allowed")
    # one byte past the cap is enough to know it is too large
    data = await upload.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise InvalidFile(f"File exceeds the {max_bytes // (1024 * 1024)}MB limit")
    if not data:
        raise InvalidFile("Uploaded file is empty")
    return IncomingFile(original_name=upload.filename or "", content_type=content_type, data=data)


def generate_filename(original_name: str, content_type: Optional[str] = None) -> str:
    """`<ms timestamp>-<random>` plus the original extension; nothing else is taken from the client.

    Without a usable extension on the client name, one is derived from the content type.
    """
    ext = os.path.splitext(os.path.basename(original_name.replace("\\", "/")))[1].lower()
    if not EXTENSION.match(ext):
        ext = (mimetypes.guess_extension(content_type) or "") if content_type else ""
        if not EXTENSION.match(ext):
            ext = ""
    return f"{int(time.time() * 1000)}-{random.SystemRandom().randint(0, 10**9 - 1):09d}{ext}"


def check_reference(ref: str, pattern=SAFE_FILENAME) -> str:
    if not pattern.match(ref):
        raise ValidationError("Invalid file reference")
    return ref


# --- Storage backends ---
class AssetStorage:
    strategy: UploadStrategy

    async def save(self, file: IncomingFile) -> str:
        raise NotImplementedError

    async def save_many(self, files: Sequence[IncomingFile]) -> List[str]:
        saved: List[str] = []
        try:
            for file in files:
                saved.append(await self.save(file))
        except Exception:
            for ref in saved:
                try:
                    await self.discard(ref)
                except Exception:
                    logger.exception("❌ Could not remove partial upload %s", ref)
            raise
        return saved

    async def discard(self, reference: str) -> None:
        raise NotImplementedError

    async def resolve(self, ref: str) -> ResolvedAsset:
        raise NotImplementedError

    async def list_assets(self) -> List[AssetInfo]:
        raise NotImplementedError


class DiskAssetStorage(AssetStorage):
    strategy = UploadStrategy.DISK
    url_prefix = "/uploads/"

    def __init__(self, uploads_dir: Path):
        self.uploads_dir = Path(uploads_dir)

    def ensure_dir(self) -> None:
        if not self.uploads_dir.exists():
            logger.info("Creating uploads directory at %s", self.uploads_dir)
        self.uploads_dir.mkdir(parents=True, exist_ok=True)

    def _path_for(self, filename: str) -> Path:
        root = self.uploads_dir.resolve()
        path = (root / filename).resolve()
        if path.parent != root:
            raise ValidationError("Invalid file reference")
        return path

    def _write(self, path: Path, data: bytes) -> None:
        self.ensure_dir()
        with open(path, "xb") as fh:
            try:
                fh.write(data)
            except BaseException:
                fh.close()
                path.unlink()
                raise

    async def save(self, file: IncomingFile) -> str:
        filename = generate_filename(file.original_name, file.content_type)
        await asyncio.to_thread(self._write, self._path_for(filename), file.data)
        logger.info("Stored upload %s (%d bytes) on disk", filename, file.size)
        return self.url_prefix + filename

    async def discard(self, reference: str) -> None:
        path = self._path_for(reference[len(self.url_prefix):])
        await asyncio.to_thread(lambda: path.unlink(missing_ok=True))

    async def resolve(self, ref: str) -> ResolvedAsset:
        path = self._path_for(check_reference(ref))
        if not path.is_file():
            raise NotFound("File not found")
        return ResolvedAsset(path=path)

    def _scan(self) -> List[AssetInfo]:
        if not self.uploads_dir.is_dir():
            return []
        assets = []
        for entry in sorted(self.uploads_dir.iterdir()):
            if not entry.is_file() or entry.name.startswith("."):
                continue
            stat = entry.stat()
            assets.append(AssetInfo(
                reference=self.url_prefix + entry.name,
                filename=entry.name,
                size=stat.st_size,
                created_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            ))
        return assets

    async def list_assets(self) -> List[AssetInfo]:
        return await asyncio.to_thread(self._scan)


class DatabaseAssetStorage(AssetStorage):
    strategy = UploadStrategy.DATABASE
    url_prefix = "/api/uploads/"

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _row_for(self, file: IncomingFile) -> UploadedAsset:
        return UploadedAsset(
            id=uuid.uuid4().hex,
            filename=generate_filename(file.original_name, file.content_type),
            mime_type=file.content_type,
            size=file.size,
            data_base64=base64.b64encode(file.data).decode("ascii"),
            created_at=utcnow(),
        )

    async def save(self, file: IncomingFile) -> str:
        return (await self.save_many([file]))[0]

    async def save_many(self, files: Sequence[IncomingFile]) -> List[str]:
        rows = [self._row_for(f) for f in files]
        async with self._session_factory() as session:
            session.add_all(rows)
            await session.commit()
        for row in rows:
            logger.info("Stored upload %s (%d bytes) in the database as %s", row.filename, row.size, row.id)
        return [self.url_prefix + row.id for row in rows]

    async def discard(self, reference: str) -> None:
        asset_id = reference[len(self.url_prefix):]
        async with self._session_factory() as session:
            await session.exec(delete(UploadedAsset).where(UploadedAsset.id == asset_id))
            await session.commit()

    async def resolve(self, ref: str) -> ResolvedAsset:
        asset_id = check_reference(ref, ASSET_ID)
        async with self._session_factory() as session:
            row = await session.get(UploadedAsset, asset_id)
        if row is None:
            raise NotFound("File not found")
        return ResolvedAsset(mime_type=row.mime_type, data=base64.b64decode(row.data_base64))

    async def list_assets(self) -> List[AssetInfo]:
        stmt = select(
            UploadedAsset.id, UploadedAsset.filename, UploadedAsset.size,
            UploadedAsset.mime_type, UploadedAsset.created_at,
        ).order_by(UploadedAsset.created_at)
        async with self._session_factory() as session:
            result = await session.exec(stmt)
            rows = result.all()
        return [
            AssetInfo(
                reference=self.url_prefix + asset_id,
                filename=filename,
                size=size,
                mime_type=mime_type,
                created_at=created_at,
            )
            for asset_id, filename, size, mime_type, created_at in rows
        ]


class S3AssetStorage(AssetStorage):
    strategy = UploadStrategy.S3

    def __init__(self, settings, client=None):
        self.bucket = settings.s3_bucket
        self.prefix = settings.s3_prefix
        self.acl = settings.s3_object_acl
        self.public_base_url = self._public_base(settings)
        self._client = client or boto3.client(
            "s3",
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            endpoint_url=settings.s3_endpoint_url,
            region_name=settings.s3_region,
        )

    def _public_base(self, settings) -> str:
        if settings.s3_public_base_url:
            return settings.s3_public_base_url.rstrip("/")
        if settings.s3_endpoint_url:
            return f"{settings.s3_endpoint_url.rstrip('/')}/{settings.s3_bucket}"
        region = settings.s3_region or "us-east-1"
        return f"https://{settings.s3_bucket}.s3.{region}.amazonaws.com"

    def public_url(self, filename: str) -> str:
        return f"{self.public_base_url}/{self.prefix}{filename}"

    async def save(self, file: IncomingFile) -> str:
        filename = generate_filename(file.original_name, file.content_type)
        params = {
            "Bucket": self.bucket,
            "Key": self.prefix + filename,
            "Body": file.data,
            "ContentType": file.content_type,
        }
        if self.acl:
            params["ACL"] = self.acl
        await asyncio.to_thread(lambda: self._client.put_object(**params))
        logger.info("Stored upload %s (%d bytes) in bucket %s", filename, file.size, self.bucket)
        return self.public_url(filename)

    async def discard(self, reference: str) -> None:
        key = self.prefix + reference.rsplit("/", 1)[-1]
        await asyncio.to_thread(lambda: self._client.delete_object(Bucket=self.bucket, Key=key))

    async def resolve(self, ref: str) -> ResolvedAsset:
        filename = check_reference(ref)
        key = self.prefix + filename
        try:
            await asyncio.to_thread(lambda: self._client.head_object(Bucket=self.bucket, Key=key))
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") in ("404", "NoSuchKey", "NotFound"):
                raise NotFound("File not found")
            raise
        return ResolvedAsset(redirect_url=self.public_url(filename))

    async def list_assets(self) -> List[AssetInfo]:
        def _list():
            paginator = self._client.get_paginator("list_objects_v2")
            assets = []
            for page in paginator.paginate(Bucket=self.bucket, Prefix=self.prefix):
                for obj in page.get("Contents", []):
                    filename = obj["Key"][len(self.prefix):]
                    assets.append(AssetInfo(
                        reference=self.public_url(filename),
                        filename=filename,
                        size=obj.get("Size", 0),
                        created_at=obj.get("LastModified"),
                    ))
            return assets

        return await asyncio.to_thread(_list)


def create_asset_storage(strategy: UploadStrategy, settings, session_factory: Optional[sessionmaker]) -> AssetStorage:
    if strategy is UploadStrategy.S3:
        return S3AssetStorage(settings)
    if strategy is UploadStrategy.DATABASE:
        if session_factory is None:
            raise ConfigurationError("Database uploads need DATABASE_URL")
        return DatabaseAssetStorage(session_factory)
    return DiskAssetStorage(settings.uploads_dir)
