import os
from pathlib import Path
from typing import List, Literal, Mapping, Optional

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigurationError

SERVERLESS_MARKERS = ("SERVERLESS", "VERCEL", "AWS_LAMBDA_FUNCTION_NAME", "K_SERVICE", "NETLIFY")

TRUTHY = {"1", "true", "yes", "on"}
FALSY = {"0", "false", "no", "off", ""}


class Settings(BaseModel):
    app_env: str = "development"
    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]
    trust_proxy: bool = False

    # --- storage ---
    database_url: Optional[str] = None
    database_echo: bool = False
    content_store: Literal["auto", "file", "database"] = "auto"
    content_file: Path = Path("data/content.json")
    seed_on_startup: bool = True

    # --- auth ---
    admin_username: str = "admin"
    admin_password: str = "password123"
    admin_password_hash: Optional[str] = None
    session_store: Literal["auto", "memory", "database", "redis"] = "auto"
    redis_url: Optional[str] = None
    session_cookie_name: str = "portfolio.sid"
    session_max_age: int = 24 * 60 * 60
    login_max_attempts: int = 10
    login_window_seconds: int = 15 * 60
    contact_max_attempts: int = 5
    contact_window_seconds: int = 60 * 60
    sweep_interval_seconds: int = 60

    # --- uploads ---
    upload_strategy: Literal["auto", "s3", "database", "disk"] = "auto"
    uploads_dir: Path = Path("public/uploads")
    upload_max_bytes: int = 5 * 1024 * 1024
    upload_max_files: int = 10
    serverless: bool = False
    s3_bucket: Optional[str] = None
    s3_access_key_id: Optional[str] = None
    s3_secret_access_key: Optional[str] = None
    s3_endpoint_url: Optional[str] = None
    s3_region: Optional[str] = None
    s3_public_base_url: Optional[str] = None
    s3_prefix: str = "uploads/"
    s3_object_acl: Optional[str] = None

    # --- site ---
    resume_path: Path = Path("attached_assets/resume.pdf")
    resume_download_name: str = "resume.pdf"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"

    @property
    def has_object_storage(self) -> bool:
        return bool(self.s3_bucket and self.s3_access_key_id and self.s3_secret_access_key)

    @property
    def uses_database_content(self) -> bool:
        if self.content_store == "auto":
            return bool(self.database_url)
        return self.content_store == "database"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        app_env = env.get("APP_ENV") or env.get("NODE_ENV") or "development"

        values = {
            "app_env": app_env,
            "log_level": env.get("LOG_LEVEL", "INFO").upper(),
            "cors_origins": [o.strip() for o in env.get("CORS_ORIGINS", "*").split(",") if o.strip()],
            "trust_proxy": _flag(env, "TRUST_PROXY", app_env == "production"),
            "database_url": normalize_database_url(env.get("DATABASE_URL")),
            "database_echo": _flag(env, "DATABASE_ECHO", False),
            "content_store": env.get("CONTENT_STORE", "auto").lower(),
            "content_file": Path(env.get("CONTENT_FILE", "data/content.json")),
            "seed_on_startup": _flag(env, "SEED_ON_STARTUP", True),
            "admin_username": env.get("ADMIN_USERNAME", "admin"),
            "admin_password": env.get("ADMIN_PASSWORD", "password123"),
            "admin_password_hash": env.get("ADMIN_PASSWORD_HASH") or None,
            "session_store": env.get("SESSION_STORE", "auto").lower(),
            "redis_url": env.get("REDIS_URL") or None,
            "session_cookie_name": env.get("SESSION_COOKIE_NAME", "portfolio.sid"),
            "session_max_age": _int(env, "SESSION_MAX_AGE", 24 * 60 * 60),
            "login_max_attempts": _int(env, "LOGIN_MAX_ATTEMPTS", 10),
            "login_window_seconds": _int(env, "LOGIN_WINDOW_SECONDS", 15 * 60),
            "contact_max_attempts": _int(env, "CONTACT_MAX_ATTEMPTS", 5),
            "contact_window_seconds": _int(env, "CONTACT_WINDOW_SECONDS", 60 * 60),
            "upload_strategy": env.get("UPLOAD_STRATEGY", "auto").lower(),
            "uploads_dir": Path(env.get("UPLOADS_DIR", "public/uploads")),
            "upload_max_bytes": _int(env, "UPLOAD_MAX_BYTES", 5 * 1024 * 1024),
            "upload_max_files": _int(env, "UPLOAD_MAX_FILES", 10),
            "serverless": any(env.get(name) for name in SERVERLESS_MARKERS),
            "s3_bucket": env.get("S3_BUCKET") or env.get("AWS_STORAGE_BUCKET_NAME") or None,
            "s3_access_key_id": env.get("S3_ACCESS_KEY_ID") or env.get("AWS_ACCESS_KEY_ID") or None,
            "s3_secret_access_key": env.get("S3_SECRET_ACCESS_KEY") or env.get("AWS_SECRET_ACCESS_KEY") or None,
            "s3_endpoint_url": env.get("S3_ENDPOINT_URL") or env.get("AWS_S3_ENDPOINT_URL") or None,
            "s3_region": env.get("S3_REGION") or env.get("AWS_S3_REGION_NAME") or None,
            "s3_public_base_url": env.get("S3_PUBLIC_BASE_URL") or None,
            "s3_prefix": env.get("S3_PREFIX", "uploads/"),
            "s3_object_acl": env.get("S3_OBJECT_ACL") or None,
            "resume_path": Path(env.get("RESUME_PATH", "attached_assets/resume.pdf")),
            "resume_download_name": env.get("RESUME_DOWNLOAD_NAME", "resume.pdf"),
        }
        try:
            return cls(**values)
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc


def normalize_database_url(url: Optional[str]) -> Optional[str]:
    """Point plain postgres URLs at the asyncpg driver."""
    if not url:
        return None
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in TRUTHY:
        return True
    if value in FALSY:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value
