"""
pressgate/core/security.py
FastAPI dependencies wiring the store, the profile resolver, the storage policy
and the client guard for a request.

Routers use `open_guard(...)` to pre-check an action before submitting the
write through `get_writer()`; the writer re-checks against stored state.
"""
import asyncio
import logging
from functools import lru_cache
from typing import Optional

from fastapi import Depends

from pressgate.config import settings
from pressgate.core.auth import get_optional_principal, get_principal
from pressgate.repositories.store import DocumentStore, build_store
from pressgate.schemas.principal import Principal
from pressgate.schemas.profile import ProfileRecord
from pressgate.services.client_guard import ClientGuard, store_owner_lookup
from pressgate.services.profile_resolver import ProfileResolver, build_resolver
from pressgate.services.storage_policy import StoragePolicy, get_storage_policy
from pressgate.services.writes import AuthoritativeWriter

logger = logging.getLogger("pressgate.security")


@lru_cache(maxsize=1)
def get_store() -> DocumentStore:
    return build_store(settings.store_backend)


def get_resolver(store: DocumentStore = Depends(get_store)) -> ProfileResolver:
    return build_resolver(store)


def get_policy() -> StoragePolicy:
    return get_storage_policy(settings.public_site_config)


def get_writer(
    store: DocumentStore = Depends(get_store),
    policy: StoragePolicy = Depends(get_policy),
) -> AuthoritativeWriter:
    return AuthoritativeWriter(
        store,
        policy,
        attempts=settings.write_retry_attempts,
        base_delay=settings.write_retry_base_delay,
    )


async def get_current_profile(
    principal: Principal = Depends(get_principal),
    resolver: ProfileResolver = Depends(get_resolver),
) -> ProfileRecord:
    """
    Authenticated principal's profile, created as subscriber on first sign-in.
    """
    return await resolver.resolve_or_create(principal)


async def open_guard(
    store: DocumentStore,
    resolver: ProfileResolver,
    principal: Optional[Principal],
    *,
    collection: Optional[str] = None,
    resource_id: Optional[str] = None,
) -> ClientGuard:
    """Guard with role (and, if given, resource ownership) fully resolved."""
    guard = ClientGuard(
        resolver,
        store_owner_lookup(store, collection, timeout=settings.profile_timeout_seconds) if collection else None,
        public_site_config=settings.public_site_config,
    )
    if principal is not None:
        guard.sign_in(principal)
    if collection and resource_id:
        guard.watch_resource(resource_id)
    try:
        await guard.wait_ready(timeout=settings.profile_timeout_seconds * 2)
    except asyncio.TimeoutError:
        # Not ready means least privilege; the guard answers accordingly
        logger.warning("Guard resolution did not finish for uid=%s", principal.uid if principal else None)
    return guard


__all__ = [
    "get_store", "get_resolver", "get_policy", "get_writer", "get_current_profile",
    "open_guard", "get_principal", "get_optional_principal",
]
