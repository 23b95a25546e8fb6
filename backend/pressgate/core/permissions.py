"""
pressgate/core/permissions.py
Permission Evaluator: a direct lookup in a (action x role) rule table.

For per-resource actions the "any" grant is checked first; failing that, the
"own" grant counts only together with proven ownership. Unknown ownership
(`None`) is never treated as ownership.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Mapping, Optional

from pressgate.core.errors import PolicyMismatch
from pressgate.core.roles import Action, Grant, Role

A, O, N = Grant.ANY, Grant.OWN, Grant.NONE

#                                admin editor author contributor subscriber
RULES: Mapping[Action, Mapping[Role, Grant]] = {
    Action.CREATE_POST:       dict(zip(Role, (A, A, A, N, N))),
    Action.EDIT_POST:         dict(zip(Role, (A, A, O, O, N))),
    Action.DELETE_POST:       dict(zip(Role, (A, A, O, O, N))),
    Action.MODERATE_COMMENT:  dict(zip(Role, (A, A, N, N, N))),
    Action.CREATE_COMMENT:    dict(zip(Role, (A, A, A, A, A))),
    Action.READ_POST:         dict(zip(Role, (A, A, A, A, A))),
    Action.READ_SITE_CONFIG:  dict(zip(Role, (A, A, A, A, A))),
    Action.WRITE_SITE_CONFIG: dict(zip(Role, (A, N, N, N, N))),
}

# Actions open to unauthenticated principals
PUBLIC_ACTIONS: FrozenSet[Action] = frozenset({Action.READ_POST})
# Public only when the deployment enables it (settings.public_site_config)
CONFIGURABLE_PUBLIC_ACTIONS: FrozenSet[Action] = frozenset({Action.READ_SITE_CONFIG})


def _check_exhaustive(rules: Mapping[Action, Mapping[Role, Grant]]) -> None:
    for action in Action:
        row = rules.get(action)
        if row is None:
            raise PolicyMismatch(f"no rule for action {action.value}")
        missing = [role.value for role in Role if role not in row]
        if missing:
            raise PolicyMismatch(f"rule for {action.value} is missing roles: {', '.join(missing)}")


_check_exhaustive(RULES)


@dataclass(frozen=True)
class PermissionDecision:
    action: Action
    allowed: bool


def is_owner(principal_id: Optional[str], owner_id: Optional[str]) -> Optional[bool]:
    """True/False when both ids are known, None when ownership cannot be determined."""
    if not principal_id or not owner_id:
        return None
    return principal_id == owner_id


def grant_for(role: Role, action: Action) -> Grant:
    return RULES[action][role]


def evaluate(
    role: Optional[Role],
    action: Action,
    ownership: Optional[bool] = None,
    *,
    public_site_config: bool = True,
) -> bool:
    """
    Decide whether `role` may perform `action`.

    `role=None` stands for an unauthenticated principal. `ownership` is only
    meaningful for per-resource actions and must be exactly True to satisfy an
    "own" grant.
    """
    if role is None:
        if action in PUBLIC_ACTIONS:
            return True
        return public_site_config and action in CONFIGURABLE_PUBLIC_ACTIONS
    grant = grant_for(role, action)
    if grant is Grant.ANY:
        return True
    return grant is Grant.OWN and ownership is True


def decide(
    role: Optional[Role],
    action: Action,
    ownership: Optional[bool] = None,
    *,
    public_site_config: bool = True,
) -> PermissionDecision:
    return PermissionDecision(
        action=action,
        allowed=evaluate(role, action, ownership, public_site_config=public_site_config),
    )


# Name used when comparing against the storage-tier statement of the rules
evaluate_client = evaluate


def allowed_actions(role: Optional[Role], ownership: Optional[bool] = None) -> Dict[Action, bool]:
    return {action: evaluate(role, action, ownership) for action in Action}
