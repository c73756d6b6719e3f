from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, DateTime, Text
from sqlmodel import SQLModel, Field

from .db import utcnow


class ContentSection(SQLModel, table=True):
    __tablename__ = "content_section"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True, nullable=False, unique=True, max_length=50)
    payload: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class UploadedAsset(SQLModel, table=True):
    __tablename__ = "uploaded_asset"

    id: str = Field(primary_key=True, max_length=32)
    filename: str = Field(nullable=False)
    mime_type: str = Field(nullable=False)
    size: int
    data_base64: str = Field(sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
