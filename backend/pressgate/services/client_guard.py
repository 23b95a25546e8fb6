"""
pressgate/services/client_guard.py - Client Guard.

Advisory gate used to decide which controls to render and to short-circuit
requests that would be rejected anyway. It is not a security boundary: every
write still goes through the storage policy (see services/writes.py).

State per page/session:

    UNAUTHENTICATED -> RESOLVING_PROFILE -> AUTHORIZED(role)
                                         -> RESOLUTION_FAILED (acts as subscriber)

Role and resource ownership resolve as two independent tasks that may finish
in either order. Until both are known the guard answers with the
least-privileged (unauthenticated) view, so privileged controls never flash.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from pressgate.core.errors import NotFound, PermissionDenied, PressgateError, StoreUnavailable
from pressgate.core.permissions import PermissionDecision, decide, is_owner
from pressgate.core.roles import DEFAULT_ROLE, Action, Role
from pressgate.repositories.store import DocumentStore
from pressgate.schemas.principal import Principal
from pressgate.services.profile_resolver import ProfileResolver

logger = logging.getLogger("pressgate.guard")


class _Unknown:
    """Marker for a value that has not resolved yet. Deliberately has no truth value."""

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __bool__(self) -> bool:
        raise TypeError("UNKNOWN has no truth value; compare with `is UNKNOWN`")


UNKNOWN: Any = _Unknown()

OwnerLookup = Callable[[str], Awaitable[Optional[str]]]


class GuardState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    RESOLVING_PROFILE = "resolving_profile"
    AUTHORIZED = "authorized"
    RESOLUTION_FAILED = "resolution_failed"


DENIAL_MESSAGES: Dict[Action, str] = {
    Action.CREATE_POST: "Your account cannot create posts. Ask an editor to upgrade your role.",
    Action.EDIT_POST: "You can only edit posts you are allowed to manage.",
    Action.DELETE_POST: "You can only delete posts you are allowed to manage.",
    Action.MODERATE_COMMENT: "Only editors and administrators can moderate comments.",
    Action.CREATE_COMMENT: "Please sign in to comment.",
    Action.READ_POST: "This post is not available.",
    Action.READ_SITE_CONFIG: "Site settings are not available.",
    Action.WRITE_SITE_CONFIG: "Only administrators can change site settings.",
}
PENDING_MESSAGE = "Still checking your permissions. Please try again in a moment."


@dataclass(frozen=True)
class Affordances:
    state: GuardState
    ready: bool
    role: Optional[Role]
    can_create_post: bool
    can_edit_post: bool
    can_delete_post: bool
    can_moderate_comments: bool
    can_comment: bool
    can_edit_site_settings: bool

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def store_owner_lookup(store: DocumentStore, collection: str, *, timeout: float = 5.0) -> OwnerLookup:
    """Owner lookup against the store, bounded by `timeout` (StoreUnavailable when exceeded)."""
    async def _lookup(resource_id: str) -> Optional[str]:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(store.get_resource_owner, collection, resource_id), timeout=timeout
            )
        except asyncio.TimeoutError as exc:
            raise StoreUnavailable(f"owner lookup for {collection}/{resource_id} timed out") from exc
    return _lookup


class ClientGuard:
    def __init__(
        self,
        resolver: ProfileResolver,
        owner_lookup: Optional[OwnerLookup] = None,
        *,
        public_site_config: bool = True,
    ):
        self.resolver = resolver
        self.owner_lookup = owner_lookup
        self.public_site_config = public_site_config

        self.state = GuardState.UNAUTHENTICATED
        self.principal: Optional[Principal] = None
        self.resource_id: Optional[str] = None
        self._role: Union[Optional[Role], _Unknown] = None
        self._owner: Union[Optional[str], _Unknown] = None
        self._session_gen = 0
        self._resource_gen = 0
        self._role_task: Optional[asyncio.Task] = None
        self._owner_task: Optional[asyncio.Task] = None

    # ---------- session ----------

    def sign_in(self, principal: Principal) -> None:
        """Start resolving `principal`'s role. Any earlier resolution is discarded."""
        self._cancel(self._role_task)
        self._session_gen += 1
        self.principal = principal
        self.state = GuardState.RESOLVING_PROFILE
        self._role = UNKNOWN
        self._role_task = asyncio.get_running_loop().create_task(
            self._resolve_role(self._session_gen, principal)
        )

    def sign_out(self) -> None:
        self._cancel(self._role_task)
        self._role_task = None
        self._session_gen += 1
        self.principal = None
        self.state = GuardState.UNAUTHENTICATED
        self._role = None

    def watch_resource(self, resource_id: str) -> None:
        """Start resolving the owner of `resource_id`; ownership is UNKNOWN until it lands."""
        if self.owner_lookup is None:
            raise ValueError("ClientGuard was built without an owner lookup")
        self._cancel(self._owner_task)
        self._resource_gen += 1
        self.resource_id = resource_id
        self._owner = UNKNOWN
        self._owner_task = asyncio.get_running_loop().create_task(
            self._resolve_owner(self._resource_gen, resource_id)
        )

    def close(self) -> None:
        """Page/session ended: drop everything in flight."""
        self.sign_out()
        self._cancel(self._owner_task)
        self._owner_task = None
        self._resource_gen += 1
        self.resource_id = None
        self._owner = None

    @staticmethod
    def _cancel(task: Optional[asyncio.Task]) -> None:
        if task is not None and not task.done():
            task.cancel()

    async def _resolve_role(self, gen: int, principal: Principal) -> None:
        try:
            profile = await self.resolver.resolve_or_create(principal)
        except PressgateError as exc:
            if gen != self._session_gen:
                return
            logger.warning("Role resolution failed for uid=%s, falling back to %s: %s",
                           principal.uid, DEFAULT_ROLE.value, exc)
            self._role = DEFAULT_ROLE
            self.state = GuardState.RESOLUTION_FAILED
            return
        if gen != self._session_gen:
            logger.debug("Discarding stale role resolution for uid=%s", principal.uid)
            return
        # An unknown stored role string resolves to the default, never to a privileged role
        self._role = profile.role or DEFAULT_ROLE
        self.state = GuardState.AUTHORIZED

    async def _resolve_owner(self, gen: int, resource_id: str) -> None:
        try:
            owner = await self.owner_lookup(resource_id)
        except (NotFound, StoreUnavailable) as exc:
            logger.info("Owner of %s could not be determined: %s", resource_id, exc)
            owner = None
        if gen != self._resource_gen:
            return
        self._owner = owner

    async def wait_ready(self, timeout: Optional[float] = None) -> bool:
        """Wait for in-flight resolutions; returns `ready`."""
        async def _drain() -> None:
            while True:
                pending = [t for t in (self._role_task, self._owner_task) if t is not None and not t.done()]
                if not pending:
                    return
                await asyncio.gather(*pending, return_exceptions=True)

        await asyncio.wait_for(_drain(), timeout=timeout)
        return self.ready

    # ---------- decisions ----------

    @property
    def role(self) -> Union[Optional[Role], _Unknown]:
        if self.state is GuardState.UNAUTHENTICATED:
            return None
        return self._role

    @property
    def ownership(self) -> Union[Optional[bool], _Unknown]:
        if self._owner is UNKNOWN:
            return UNKNOWN
        uid = self.principal.uid if self.principal else None
        return is_owner(uid, self._owner)

    @property
    def ready(self) -> bool:
        if self.role is UNKNOWN:
            return False
        return self.resource_id is None or self._owner is not UNKNOWN

    def precheck(self, action: Action) -> PermissionDecision:
        if not self.ready:
            # Least-privileged answer until role and ownership are both known
            return decide(None, action, public_site_config=self.public_site_config)
        return decide(self.role, action, self.ownership, public_site_config=self.public_site_config)

    def can(self, action: Action) -> bool:
        return self.precheck(action).allowed

    def require(self, action: Action) -> None:
        """Raise PermissionDenied with a user-facing message when `action` is not allowed."""
        if self.precheck(action).allowed:
            return
        uid = self.principal.uid if self.principal else None
        message = DENIAL_MESSAGES[action] if self.ready else PENDING_MESSAGE
        if self.ready and self.principal is None and action is not Action.READ_POST:
            message = "Please sign in to continue."
        logger.info("Guard denied %s for uid=%s (state=%s)", action.value, uid, self.state.value)
        raise PermissionDenied(action.value, message)

    def affordances(self) -> Affordances:
        return Affordances(
            state=self.state,
            ready=self.ready,
            role=self.role if self.ready else None,
            can_create_post=self.can(Action.CREATE_POST),
            can_edit_post=self.resource_id is not None and self.can(Action.EDIT_POST),
            can_delete_post=self.resource_id is not None and self.can(Action.DELETE_POST),
            can_moderate_comments=self.can(Action.MODERATE_COMMENT),
            can_comment=self.can(Action.CREATE_COMMENT),
            can_edit_site_settings=self.can(Action.WRITE_SITE_CONFIG),
        )
