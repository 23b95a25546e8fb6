"""
pressgate/services/rules_render.py
Render the storage policy document as Firestore Security Rules.

The checked-in `firestore.rules` at the repository root is the output of
`render_firestore_rules(load_policy_document())`; regenerate it with
`python -m pressgate.services.rules_render > firestore.rules`.
"""
from __future__ import annotations

import sys
from typing import Dict, List, Optional

from pressgate.services.storage_policy import ActionRule, CollectionRule, PolicyDocument, load_policy_document

HEADER = """\
rules_version = '2';

// Generated from backend/pressgate/policy/storage_policy.yaml. Do not edit by hand.
service cloud.firestore {
  match /databases/{database}/documents {
    function signedIn() {
      return request.auth != null;
    }

    function profile() {
      return get(/databases/$(database)/documents/%(profiles)s/$(request.auth.uid)).data;
    }

    function role() {
      return %(role_expr)s;
    }
"""

FOOTER = """\
  }
}
"""


def _roles_list(roles: List[str]) -> str:
    return "[" + ", ".join(f"'{r}'" for r in roles) + "]"


def _grant_expr(rule: ActionRule, owner_field: Optional[str], *, stored: bool, public_site_config: bool) -> str:
    """Boolean expression for one action. `stored` selects resource.data (existing doc) for ownership."""
    public = rule.public is True or (rule.public == "configurable" and public_site_config)
    if public:
        return "true"
    any_roles = [r for r, g in rule.grants.items() if g == "any"]
    own_roles = [r for r, g in rule.grants.items() if g == "own"]
    terms = []
    if any_roles:
        terms.append(f"role() in {_roles_list(any_roles)}")
    if own_roles and owner_field:
        source = "resource.data" if stored else "request.resource.data"
        terms.append(
            f"(role() in {_roles_list(own_roles)} && {source}.{owner_field} == request.auth.uid)"
        )
    if not terms:
        return "false"
    return "signedIn() && (" + " || ".join(terms) + ")"


def _unchanged(fields: List[str]) -> str:
    return " && ".join(f"request.resource.data.{f} == resource.data.{f}" for f in fields)


def _collection_block(name: str, col: CollectionRule, doc: PolicyDocument, public_site_config: bool) -> List[str]:
    lines = [f"    match /{name}/{{docId}} {{"]
    ops: Dict[str, str] = dict(col.operations)
    for op in ("read", "create", "update", "delete", "set"):
        action = ops.get(op)
        if action is None:
            continue
        rule = doc.actions[action]
        stored = op in ("update", "delete")
        expr = _grant_expr(rule, col.owner_field, stored=stored, public_site_config=public_site_config)
        if op == "create" and col.owner_field:
            expr = f"{expr} && request.resource.data.{col.owner_field} == request.auth.uid"
        if op == "update" and col.immutable_fields:
            expr = f"{expr} && {_unchanged(col.immutable_fields)}"
        verbs = "create, update" if op == "set" else op
        lines.append(f"      allow {verbs}: if {expr};")
    covered = set(ops) | ({"create", "update"} if "set" in ops else set())
    missing = [op for op in ("create", "update", "delete") if op not in covered]
    if missing:
        lines.append(f"      allow {', '.join(missing)}: if false;")
    lines.append("    }")
    return lines


def render_firestore_rules(doc: PolicyDocument, *, public_site_config: bool = True) -> str:
    p = doc.profiles
    role_expr = f"profile().get('{p.role_field}', "
    role_expr += f"profile().get('{p.legacy_role_field}', ''))" if p.legacy_role_field else "'')"
    header = HEADER % {"profiles": p.collection, "role_expr": role_expr}
    body: List[str] = [
        f"    match /{p.collection}/{{uid}} {{",
        "      allow read: if signedIn() && request.auth.uid == uid;",
        "      allow create: if signedIn() && request.auth.uid == uid"
        f" && request.resource.data.{p.role_field} == '{p.self_create_role}';",
        "      allow update, delete: if false;",
        "    }",
    ]
    for name, col in doc.collections.items():
        body.append("")
        body.extend(_collection_block(name, col, doc, public_site_config))
    return header + "\n" + "\n".join(body) + "\n" + FOOTER


if __name__ == "__main__":
    sys.stdout.write(render_firestore_rules(load_policy_document()))
