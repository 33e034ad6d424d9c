"""Authentication dependencies for FastAPI routes."""

import secrets

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from pricetrack.config import get_settings

bearer_scheme = HTTPBearer(auto_error=False)


def require_cron_secret(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> None:
    """Require ``Authorization: Bearer <CRON_SECRET>``.

    An unconfigured secret rejects every caller rather than opening the route.
    """
    expected = get_settings().cron_secret
    if not expected or credentials is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    if not secrets.compare_digest(credentials.credentials.encode(), expected.encode()):
        raise HTTPException(status_code=401, detail="Unauthorized")
