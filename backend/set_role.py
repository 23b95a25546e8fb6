#!/usr/bin/env python3
"""
Assigns a role to a user's profile (users/{uid}) with the Firebase Admin SDK.

This is the only supported way to change a role: the application never
writes the `role` field of an existing profile.

Usage: python set_role.py <uid|email> <admin|editor|author|contributor|subscriber>
"""
import sys

from firebase_admin import auth, firestore

from pressgate.config import get_db, get_firebase_app
from pressgate.core.roles import Role


def set_role(user_ref: str, role_name: str) -> bool:
    """Writes `role` on the user's profile document."""
    role = Role.parse(role_name.strip().lower())
    if role is None:
        print(f"❌ Unknown role: {role_name} (expected one of {', '.join(r.value for r in Role)})")
        return False

    app = get_firebase_app()
    try:
        user = auth.get_user_by_email(user_ref, app=app) if "@" in user_ref else auth.get_user(user_ref, app=app)
    except auth.UserNotFoundError:
        print(f"❌ User not found: {user_ref}")
        return False
    print(f"✅ User found: {user.uid} - {user.email}")

    ref = get_db().collection("users").document(user.uid)
    previous = (ref.get().to_dict() or {}).get("role")
    ref.set({
        "uid": user.uid,
        "role": role.value,
        "updatedAt": firestore.SERVER_TIMESTAMP,
    }, merge=True)
    print(f"✅ Role for {user.uid}: {previous or '(none)'} -> {role.value}")
    return True


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("Usage: python set_role.py <uid|email> <role>")
        print("Example: python set_role.py editor@example.com editor")
        sys.exit(1)

    if not set_role(sys.argv[1], sys.argv[2]):
        print("💥 Failed to set role")
        sys.exit(1)
    print("The new role applies on the user's next request.")
