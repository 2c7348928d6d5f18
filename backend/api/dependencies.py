import logging
import secrets
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from config import settings
from policy_engine.rules import PolicyEngine
from policy_store import PolicyStore, get_policy_store

logger = logging.getLogger(__name__)


async def verify_api_token(
    authorization: Annotated[str | None, Header()] = None
) -> str:
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not secrets.compare_digest(parts[1], settings.api_token):
        logger.warning("Rejected admin API request with invalid token")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return "admin"


def get_store() -> PolicyStore:
    return get_policy_store()


def get_policy_engine(store: Annotated[PolicyStore, Depends(get_store)]) -> PolicyEngine:
    return PolicyEngine(store)


TokenDep = Annotated[str, Depends(verify_api_token)]
StoreDep = Annotated[PolicyStore, Depends(get_store)]
PolicyEngineDep = Annotated[PolicyEngine, Depends(get_policy_engine)]
