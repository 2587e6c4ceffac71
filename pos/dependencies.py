import logging
from contextlib import contextmanager
from typing import Optional

from fastapi import Header, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from pos.core.security import authenticate_request
from pos.database.session import get_db

logger = logging.getLogger(__name__)


def require_auth(
    api_key: Optional[str] = Header(None, alias="X-API-Key"),
    api_key_alt: Optional[str] = Header(None, alias="api-key"),
    authorization: Optional[str] = Header(None),
):
    api_key_value = api_key or api_key_alt
    return authenticate_request(
        api_key=api_key_value,
        authorization=authorization,
        require_auth=True,
    )


@contextmanager
def service_errors():
    """Translate service exceptions into HTTP errors."""
    try:
        yield
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (OSError, ValueError, SQLAlchemyError) as exc:
        logger.warning("Request failed: %s", exc)
        raise HTTPException(status_code=400, detail=str(exc)) from exc


__all__ = ["get_db", "require_auth", "service_errors"]
