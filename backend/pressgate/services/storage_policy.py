"""
pressgate/services/storage_policy.py - Storage Policy Evaluator.

Authoritative enforcement executed inside the store transaction for every
write. Decisions come from `policy/storage_policy.yaml`, never from the Python
rule table, and are taken against the store's own view of the requester's
profile and of the resource's stored owner. Role or ownerId values carried in
a request payload are not trusted for the decision.
"""
from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, ValidationError

from pressgate.core.errors import PermissionDenied, PolicyMismatch
from pressgate.core.roles import Action, Role, stored_role
from pressgate.repositories.store import StoreView, Write

logger = logging.getLogger("pressgate.storage_policy")

DEFAULT_POLICY_PATH = Path(__file__).resolve().parent.parent / "policy" / "storage_policy.yaml"

GrantValue = Literal["any", "own", "none"]
Operation = Literal["read", "create", "update", "delete", "set"]


class ActionRule(BaseModel):
    public: Union[bool, Literal["configurable"]] = False
    grants: Dict[str, GrantValue]


class ProfileRule(BaseModel):
    collection: str = "users"
    role_field: str = "role"
    legacy_role_field: Optional[str] = None
    self_create_role: str = "subscriber"


class CollectionRule(BaseModel):
    owner_field: Optional[str] = None
    immutable_fields: List[str] = Field(default_factory=list)
    operations: Dict[Operation, str] = Field(default_factory=dict)


class PolicyDocument(BaseModel):
    version: int
    roles: List[str]
    actions: Dict[str, ActionRule]
    profiles: ProfileRule
    collections: Dict[str, CollectionRule]


def _validate_coverage(doc: PolicyDocument) -> None:
    roles = {r.value for r in Role}
    if set(doc.roles) != roles:
        raise PolicyMismatch(f"policy roles {sorted(doc.roles)} != {sorted(roles)}")
    actions = {a.value for a in Action}
    if set(doc.actions) != actions:
        raise PolicyMismatch(f"policy actions {sorted(doc.actions)} != {sorted(actions)}")
    for name, rule in doc.actions.items():
        if set(rule.grants) != roles:
            raise PolicyMismatch(f"action {name} does not grant every role exactly once")
    for col, rule in doc.collections.items():
        unknown = [a for a in rule.operations.values() if a not in actions]
        if unknown:
            raise PolicyMismatch(f"collection {col} maps to unknown actions {unknown}")
        if any(doc.actions[a].grants.get(r) == "own" for a in rule.operations.values() for r in roles) \
                and not rule.owner_field:
            raise PolicyMismatch(f"collection {col} uses 'own' grants but declares no owner_field")


def load_policy_document(path: Union[str, Path, None] = None) -> PolicyDocument:
    path = Path(path) if path else DEFAULT_POLICY_PATH
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)
    try:
        doc = PolicyDocument.model_validate(raw)
    except ValidationError as exc:
        raise PolicyMismatch(f"invalid storage policy {path}: {exc}") from exc
    _validate_coverage(doc)
    return doc


class StoragePolicy:
    def __init__(self, document: PolicyDocument, *, public_site_config: bool = True):
        self.document = document
        self.public_site_config = public_site_config

    # ---------- decision table ----------

    def evaluate(self, role: Optional[Role], action: Action, ownership: Optional[bool] = None) -> bool:
        rule = self.document.actions[action.value]
        public = rule.public is True or (rule.public == "configurable" and self.public_site_config)
        if role is None:
            return public
        grant = rule.grants[role.value]
        return grant == "any" or (grant == "own" and ownership is True)

    # ---------- request checks ----------

    def role_of(self, view: StoreView, uid: Optional[str]) -> Optional[Role]:
        """Role from the stored profile; no uid, no profile or an unknown value all give None."""
        if not uid:
            return None
        profile = view.get_profile(uid)
        if profile is None:
            return None
        p = self.document.profiles
        return stored_role(profile, p.role_field, p.legacy_role_field)

    def _deny(self, write: Write, action: str, reason: str) -> None:
        logger.info(
            "Storage policy denied %s on %s/%s for uid=%s: %s",
            write.op, write.collection, write.doc_id, write.requester_uid, reason,
        )
        raise PermissionDenied(action, f"Request rejected by storage policy: {reason}.")

    def _check_profile_write(self, write: Write) -> None:
        p = self.document.profiles
        uid = write.requester_uid
        if write.op != "create":
            self._deny(write, "WriteProfile", "profiles are changed by administrators only")
        if not uid or write.doc_id != uid:
            self._deny(write, "WriteProfile", "a profile may only be created by its own principal")
        if write.data.get(p.role_field) != p.self_create_role:
            self._deny(write, "WriteProfile", f"new profiles must have role {p.self_create_role}")

    def check(self, write: Write, view: StoreView) -> None:
        """Raise PermissionDenied unless the stored state permits `write`."""
        if write.collection == self.document.profiles.collection:
            self._check_profile_write(write)
            return

        rule = self.document.collections.get(write.collection)
        if rule is None:
            self._deny(write, write.op, f"no policy for collection {write.collection}")
        action_name = rule.operations.get(write.op)
        if action_name is None:
            self._deny(write, write.op, f"{write.op} is not permitted on {write.collection}")
        action = Action(action_name)
        uid = write.requester_uid
        role = self.role_of(view, uid)

        ownership: Optional[bool] = None
        if write.op == "create":
            if rule.owner_field and write.data.get(rule.owner_field) != uid:
                self._deny(write, action_name, f"{rule.owner_field} must be the requester")
        elif write.op in ("update", "delete"):
            stored = view.get_document(write.collection, write.doc_id) if write.doc_id else None
            if stored is None:
                self._deny(write, action_name, "resource not found")
            if rule.owner_field:
                owner = stored.get(rule.owner_field)
                ownership = (owner == uid) if (owner and uid) else None
            for fld in rule.immutable_fields:
                if fld in write.data and write.data[fld] != stored.get(fld):
                    self._deny(write, action_name, f"{fld} cannot be changed")

        if not self.evaluate(role, action, ownership):
            self._deny(write, action_name, f"role {role.value if role else 'unauthenticated'} may not {action_name}")

    def allows(self, write: Write, view: StoreView) -> bool:
        try:
            self.check(write, view)
        except PermissionDenied:
            return False
        return True


@lru_cache(maxsize=4)
def get_storage_policy(public_site_config: bool = True) -> StoragePolicy:
    return StoragePolicy(load_policy_document(), public_site_config=public_site_config)


def evaluate_storage(
    role: Optional[Role],
    action: Action,
    ownership: Optional[bool] = None,
    *,
    public_site_config: bool = True,
) -> bool:
    return get_storage_policy(public_site_config).evaluate(role, action, ownership)
