"""
pressgate/core/roles.py
Closed role, action and grant vocabularies.

Roles carry no ordering: privilege is decided per action by the rule table in
`pressgate.core.permissions`.
"""
from enum import Enum
from typing import Any, Mapping, Optional


class Role(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    AUTHOR = "author"
    CONTRIBUTOR = "contributor"
    SUBSCRIBER = "subscriber"

    @classmethod
    def parse(cls, value: Any) -> Optional["Role"]:
        """Stored value -> Role. Exact match only, as the Firestore rules compare it;
        unknown or missing values give None, never a privileged role."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


DEFAULT_ROLE = Role.SUBSCRIBER

ROLE_FIELD = "role"
LEGACY_ROLE_FIELD = "profile"  # older client builds


def stored_role(
    data: Mapping[str, Any],
    role_field: str = ROLE_FIELD,
    legacy_field: Optional[str] = LEGACY_ROLE_FIELD,
) -> Optional[Role]:
    """Role held by a profile document.

    The legacy field is read only when the role field is absent. A present
    but null or unrecognised role is None; it does not fall through.
    """
    if role_field in data:
        return Role.parse(data[role_field])
    if legacy_field:
        return Role.parse(data.get(legacy_field))
    return None


class Action(str, Enum):
    CREATE_POST = "CreatePost"
    EDIT_POST = "EditPost"
    DELETE_POST = "DeletePost"
    MODERATE_COMMENT = "ModerateComment"
    CREATE_COMMENT = "CreateComment"
    READ_POST = "ReadPost"
    READ_SITE_CONFIG = "ReadSiteConfig"
    WRITE_SITE_CONFIG = "WriteSiteConfig"


class Grant(str, Enum):
    ANY = "any"    # allowed regardless of ownership
    OWN = "own"    # allowed only with proven ownership
    NONE = "none"
