"""
Policy API Routes

Inspects and reloads the TLS policy snapshot used by the filter.
"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel

from api.dependencies import PolicyEngineDep, StoreDep, TokenDep
from policy_engine.rules import is_capable_policy
from policy_store import PolicyStoreError, PolicyStoreUnavailableError

logger = logging.getLogger(__name__)
router = APIRouter()


class PolicyStatus(BaseModel):
    """State of the snapshot in service."""
    loaded: bool
    source: Optional[str] = None
    entries: int = 0
    generation: int = 0
    loaded_at: Optional[datetime] = None


class DomainPolicy(BaseModel):
    """Policy of one destination domain."""
    domain: str
    policy: Optional[str] = None
    enforced_capable: bool


def _status_of(store) -> PolicyStatus:
    if not store.is_loaded:
        return PolicyStatus(loaded=False, source=store.source)

    snapshot = store.current()
    return PolicyStatus(
        loaded=True,
        source=snapshot.source,
        entries=len(snapshot),
        generation=snapshot.generation,
        loaded_at=snapshot.loaded_at,
    )


@router.get("/status", response_model=PolicyStatus)
async def get_policy_status(token: TokenDep, store: StoreDep):
    return _status_of(store)


@router.get("/domains/{domain}", response_model=DomainPolicy)
async def get_domain_policy(domain: str, token: TokenDep, engine: PolicyEngineDep):
    """Look up the stored policy and enforced TLS capability of a domain."""
    try:
        policy = engine.lookup(domain)
    except PolicyStoreUnavailableError as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    return DomainPolicy(
        domain=domain,
        policy=policy,
        enforced_capable=is_capable_policy(policy),
    )


@router.post("/reload", response_model=PolicyStatus)
async def reload_policy(token: TokenDep, store: StoreDep):
    """
    Load a fresh snapshot from the configured policy map.

    On failure the previous snapshot stays in service.
    """
    try:
        store.reload()
    except PolicyStoreError as e:
        logger.error("Policy reload via API failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(e),
        )

    return _status_of(store)
