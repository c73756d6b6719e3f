import asyncio
import hashlib
import hmac
import logging
import re
import secrets
from typing import Optional

from fastapi import Request
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from .admin_model import Admin
from .errors import Unauthorized, backend_errors
from .sessions import SessionData, SessionStore

logger = logging.getLogger(__name__)

# pbkdf2_sha256 avoids the bcrypt backend compatibility issues
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

LEGACY_SHA256 = re.compile(r"^[0-9a-fA-F]{64}$")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if LEGACY_SHA256.match(hashed_password):
        # Unsalted digests are still accepted so old deployments keep working.
        digest = hashlib.sha256(plain_password.encode("utf-8")).hexdigest()
        return hmac.compare_digest(digest, hashed_password.lower())
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        logger.error("❌ Stored admin password hash is not a recognised format")
        return False


def _same_username(supplied: str, expected: str) -> bool:
    return hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def _initial_hash(settings) -> str:
    if settings.admin_password_hash:
        if LEGACY_SHA256.match(settings.admin_password_hash):
            logger.warning("⚠️ ADMIN_PASSWORD_HASH is an unsalted SHA-256 digest; replace it with a pbkdf2_sha256 hash")
        return settings.admin_password_hash
    return hash_password(settings.admin_password)


# --- Admin identity ---
class StaticAdminDirectory:
    """The single admin identity held in process configuration."""

    kind = "static"

    def __init__(self, settings):
        self.username = settings.admin_username
        self._password_hash = _initial_hash(settings)

    async def authenticate(self, username: str, password: str) -> bool:
        username_ok = _same_username(username, self.username)
        password_ok = await asyncio.to_thread(verify_password, password, self._password_hash)
        return username_ok and password_ok


class DatabaseAdminDirectory:
    """Admin row persisted in the database, created on the first authentication attempt."""

    kind = "database"

    def __init__(self, session_factory: sessionmaker, settings):
        self._session_factory = session_factory
        self._settings = settings
        self._seed_hash: Optional[str] = None

    async def _get_or_create_admin(self) -> Admin:
        username = self._settings.admin_username
        async with self._session_factory() as session:
            result = await session.exec(select(Admin).where(Admin.username == username))
            admin = result.first()
            if admin is not None:
                return admin

            if self._seed_hash is None:
                self._seed_hash = _initial_hash(self._settings)
            admin = Admin(username=username, password_hash=self._seed_hash)
            session.add(admin)
            try:
                await session.commit()
            except IntegrityError:
                # another request created it first
                await session.rollback()
                result = await session.exec(select(Admin).where(Admin.username == username))
                return result.one()
            await session.refresh(admin)
            logger.info("✅ Admin account %s created", username)
            return admin

    async def authenticate(self, username: str, password: str) -> bool:
        admin = await self._get_or_create_admin()
        username_ok = _same_username(username, admin.username)
        password_ok = await asyncio.to_thread(verify_password, password, admin.password_hash)
        return username_ok and password_ok


def create_admin_directory(settings, session_factory: Optional[sessionmaker]):
    if session_factory is not None:
        return DatabaseAdminDirectory(session_factory, settings)
    return StaticAdminDirectory(settings)


# --- Sessions ---
class AuthService:
    def __init__(self, directory, store: SessionStore, settings):
        self.directory = directory
        self.store = store
        self.cookie_name = settings.session_cookie_name
        self.max_age = settings.session_max_age
        self.secure_cookie = settings.is_production

    async def login(self, username: str, password: str, previous_sid: Optional[str] = None) -> str:
        if not await self.directory.authenticate(username, password):
            raise Unauthorized("Invalid credentials")
        if previous_sid:
            await self.store.delete(previous_sid)
        sid = secrets.token_urlsafe(32)
        await self.store.save(sid, {"isAuthenticated": True, "username": username}, self.max_age)
        logger.info("Admin %s logged in", username)
        return sid

    async def logout(self, sid: Optional[str]) -> None:
        if sid:
            await self.store.delete(sid)

    async def current(self, sid: Optional[str]) -> Optional[SessionData]:
        if not sid:
            return None
        data = await self.store.load(sid)
        if not data or not data.get("isAuthenticated"):
            return None
        return data

    async def status(self, sid: Optional[str]) -> dict:
        try:
            data = await self.current(sid)
        except Exception:
            logger.exception("❌ Session lookup failed")
            data = None
        if data is None:
            return {"isAuthenticated": False}
        return {"isAuthenticated": True, "username": data.get("username")}

    def set_cookie(self, response, sid: str) -> None:
        response.set_cookie(
            self.cookie_name,
            sid,
            max_age=self.max_age,
            httponly=True,
            samesite="lax",
            secure=self.secure_cookie,
        )

    def clear_cookie(self, response) -> None:
        response.delete_cookie(self.cookie_name, httponly=True, samesite="lax", secure=self.secure_cookie)


# Dependency
async def require_auth(request: Request) -> SessionData:
    auth: AuthService = request.app.state.auth
    with backend_errors("Failed to verify session", "session lookup"):
        data = await auth.current(request.cookies.get(auth.cookie_name))
    if data is None:
        raise Unauthorized()
    return data
