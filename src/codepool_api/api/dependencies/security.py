import secrets

from fastapi import Header
from loguru import logger

from codepool_api.core.errors import UnauthorizedError
from codepool_api.core.settings import settings


def _check_api_key(provided: str, expected: str, *, scope: str) -> None:
    if not expected:
        logger.warning("API key not configured; rejecting request", scope=scope)
        raise UnauthorizedError()

    if not provided or not secrets.compare_digest(provided.encode(), expected.encode()):
        raise UnauthorizedError()


async def require_redeem_api_key(x_api_key: str = Header("", alias="X-API-Key")) -> None:
    _check_api_key(x_api_key, settings.redeem_secret_key, scope="redeem")


async def require_admin_api_key(x_api_key: str = Header("", alias="X-API-Key")) -> None:
    _check_api_key(x_api_key, settings.admin_secret_key, scope="admin")
