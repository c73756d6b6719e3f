from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import SQLModel, Field

from .db import utcnow


class Admin(SQLModel, table=True):
    __tablename__ = "admin"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, nullable=False, unique=True)
    password_hash: str = Field(nullable=False)
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class AdminSession(SQLModel, table=True):
    __tablename__ = "admin_session"

    id: str = Field(primary_key=True, max_length=64)
    data: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    # epoch seconds, compared against time.time()
    expires_at: float = Field(index=True)
