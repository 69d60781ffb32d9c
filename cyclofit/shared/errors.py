"""HTTP error bodies shared by the routers."""

from typing import Optional

from fastapi import HTTPException, status

from cyclofit.shared.config.settings import Settings


def error_detail(settings: Settings, message: str, exc: Optional[BaseException] = None) -> dict:
    """{"error": message} plus the exception text outside production."""
    detail = {"error": message}
    if exc is not None and not settings.is_production:
        detail["details"] = str(exc)
    return detail


def server_error(
    settings: Settings,
    message: str,
    exc: Optional[BaseException] = None,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
) -> HTTPException:
    return HTTPException(status_code=status_code, detail=error_detail(settings, message, exc))
