"""
API key check for the clinical endpoints.

Routers that touch patient data declare ``dependencies=[Depends(verify_api_key)]``.
The measure library and the probe endpoints stay public.
"""
import logging
import secrets
from typing import Optional

from fastapi import HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from outcome_svc.core.config import API_KEY

logger = logging.getLogger(__name__)

API_KEY_HEADER_NAME = "X-API-Key"

api_key_header = APIKeyHeader(
    name=API_KEY_HEADER_NAME,
    auto_error=False,
    description="Clinic integration key. Send it in the X-API-Key header.",
)


async def verify_api_key(
    request: Request,
    api_key: Optional[str] = Security(api_key_header),
) -> str:
    """
    Reject the request unless it carries the configured key.

    A missing header is 401, a wrong key is 403. The comparison is constant-time.
    """
    rejected = {"method": request.method, "path": request.url.path}

    if not api_key:
        logger.warning("Request to clinical endpoint without API key", extra=rejected)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing API key. Include it in the X-API-Key header.",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    if not secrets.compare_digest(api_key.encode(), API_KEY.encode()):
        logger.warning("Request to clinical endpoint with invalid API key", extra=rejected)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key
