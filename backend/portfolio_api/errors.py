import logging
from contextlib import contextmanager
from typing import Optional

logger = logging.getLogger(__name__)


class PortfolioError(Exception):
    """Base error carrying an HTTP status and a message that is safe to show clients."""

    status_code = 500
    default_message = "Internal Server Error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PortfolioError):
    status_code = 400
    default_message = "Invalid request"


class InvalidFile(ValidationError):
    default_message = "No file uploaded or invalid file type"


class Unauthorized(PortfolioError):
    status_code = 401
    default_message = "Unauthorized"


class NotFound(PortfolioError):
    status_code = 404
    default_message = "Not found"


class RateLimited(PortfolioError):
    status_code = 429
    default_message = "Too many requests. Please try again later."

    def __init__(self, message: Optional[str] = None, retry_after: int = 0):
        super().__init__(message)
        self.retry_after = retry_after


class BackendFailure(PortfolioError):
    status_code = 500


class ConfigurationError(RuntimeError):
    pass


@contextmanager
def backend_errors(message: str, operation: str, **context):
    """Turn unexpected storage errors into BackendFailure, logging the operation context."""
    try:
        yield
    except PortfolioError:
        raise
    except Exception as exc:
        details = ", ".join(f"{key}={value}" for key, value in context.items())
        logger.exception("❌ %s failed (%s)", operation, details or "no context")
        raise BackendFailure(message) from exc
