"""
Shared pytest fixtures.

Every test runs against MemoryDocumentStore; no Firebase project is needed.
"""
from typing import Dict, Optional

import pytest

from pressgate.config import settings
from pressgate.core.roles import Role
from pressgate.repositories.store import OWNER_FIELD, POSTS, PROFILES, MemoryDocumentStore
from pressgate.services.profile_resolver import ProfileResolver
from pressgate.services.storage_policy import StoragePolicy, load_policy_document
from pressgate.services.writes import AuthoritativeWriter

# uid -> role for the seeded profiles
USERS: Dict[str, Optional[Role]] = {
    "u-admin": Role.ADMIN,
    "u-editor": Role.EDITOR,
    "u-author": Role.AUTHOR,
    "u-contrib": Role.CONTRIBUTOR,
    "u-sub": Role.SUBSCRIBER,
}


def seed_profiles() -> Dict[str, Dict]:
    return {
        uid: {"uid": uid, "displayName": uid.title(), "email": f"{uid}@example.com", "role": role.value}
        for uid, role in USERS.items()
    }


@pytest.fixture
def store() -> MemoryDocumentStore:
    return MemoryDocumentStore(seed={
        PROFILES: seed_profiles(),
        POSTS: {
            "p-author": {"title": "By author", "content": "<p>a</p>", OWNER_FIELD: "u-author"},
            "p-contrib": {"title": "By contributor", "content": "<p>c</p>", OWNER_FIELD: "u-contrib"},
        },
    })


@pytest.fixture
def resolver(store) -> ProfileResolver:
    return ProfileResolver(store, timeout=1.0)


@pytest.fixture
def policy() -> StoragePolicy:
    return StoragePolicy(load_policy_document())


@pytest.fixture
def writer(store, policy) -> AuthoritativeWriter:
    return AuthoritativeWriter(store, policy, attempts=3, base_delay=0)


@pytest.fixture
def mock_tokens(monkeypatch):
    monkeypatch.setattr(settings, "allow_mock_tokens", True)


def bearer(uid: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer mock_jwt_token_{uid}"}
