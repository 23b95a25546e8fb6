"""
pressgate/services/profile_resolver.py - Profile Resolver.

Maps a principal to its stored ProfileRecord (`users/{uid}`), creating a
subscriber profile on first sign-in. Existing profiles are never rewritten
here: neither the role nor the display attributes are refreshed from the
authentication provider.

Blocking store calls run in a worker thread and are bounded by
`settings.profile_timeout_seconds`; a timeout or transport failure surfaces as
StoreUnavailable so callers can fail closed.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, TypeVar

from pressgate.config import settings
from pressgate.core.errors import NotFound, PressgateError, StoreUnavailable
from pressgate.repositories.store import DocumentStore
from pressgate.schemas.principal import Principal
from pressgate.schemas.profile import ProfileRecord, profile_defaults

logger = logging.getLogger("pressgate.profiles")

T = TypeVar("T")


class ProfileResolver:
    def __init__(self, store: DocumentStore, *, timeout: float = 5.0):
        self.store = store
        self.timeout = timeout

    async def _call(self, what: str, fn: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            logger.warning("Profile store timed out after %.1fs during %s", self.timeout, what)
            raise StoreUnavailable(f"profile store timed out during {what}") from exc
        except PressgateError:
            raise
        except Exception as exc:
            logger.warning("Profile store failed during %s: %s", what, exc)
            raise StoreUnavailable(f"profile store failed during {what}: {exc}") from exc

    async def resolve(self, principal_id: str) -> ProfileRecord:
        """Stored profile for `principal_id`. Raises NotFound; never creates one."""
        data = await self._call("resolve", self.store.get_profile, principal_id)
        if data is None:
            raise NotFound("profile", principal_id)
        return ProfileRecord.from_document(principal_id, data)

    async def resolve_or_create(self, principal: Principal) -> ProfileRecord:
        """
        Existing profile unchanged, or a new subscriber profile.
        Create-if-absent: when two first sign-ins race, the first write wins and the
        other call returns that same record.
        """
        defaults = profile_defaults(principal.display_name, principal.email)
        data, created = await self._call("resolve_or_create", self.store.upsert_profile, principal.uid, defaults)
        if created:
            logger.info("Created subscriber profile for uid=%s", principal.uid)
        return ProfileRecord.from_document(principal.uid, data)


def build_resolver(store: DocumentStore, timeout: Optional[float] = None) -> ProfileResolver:
    """Resolver bounded by `settings.profile_timeout_seconds` unless a timeout is given."""
    return ProfileResolver(store, timeout=timeout if timeout is not None else settings.profile_timeout_seconds)
