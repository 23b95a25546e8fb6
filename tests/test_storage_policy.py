import pytest

from pressgate.core.errors import PermissionDenied
from pressgate.repositories.store import COMMENTS, OWNER_FIELD, POSTS, PROFILES, SITE, SITE_SETTINGS_ID, Write, _MemoryView


def _check(policy, store, write):
    """Run the policy check the way the store does, inside apply_if_permitted."""
    return store.apply_if_permitted(write, policy.check)


class TestPosts:
    def test_author_creates_post_owned_by_self(self, policy, store):
        post_id = _check(policy, store, Write("create", POSTS, None, "u-author", {"title": "t", OWNER_FIELD: "u-author"}))
        assert store.get_resource_owner(POSTS, post_id) == "u-author"

    def test_create_with_someone_elses_owner_is_rejected(self, policy, store):
        with pytest.raises(PermissionDenied, match="ownerId must be the requester"):
            _check(policy, store, Write("create", POSTS, None, "u-author", {"title": "t", OWNER_FIELD: "u-admin"}))

    def test_contributor_cannot_create(self, policy, store):
        with pytest.raises(PermissionDenied):
            _check(policy, store, Write("create", POSTS, None, "u-contrib", {"title": "t", OWNER_FIELD: "u-contrib"}))

    def test_contributor_edits_own_post(self, policy, store):
        _check(policy, store, Write("update", POSTS, "p-contrib", "u-contrib", {"title": "new"}))
        assert store.get_document(POSTS, "p-contrib")["title"] == "new"

    def test_author_cannot_edit_others_post(self, policy, store):
        with pytest.raises(PermissionDenied):
            _check(policy, store, Write("update", POSTS, "p-contrib", "u-author", {"title": "hijack"}))
        assert store.get_document(POSTS, "p-contrib")["title"] == "By contributor"

    def test_editor_edits_any_post(self, policy, store):
        _check(policy, store, Write("update", POSTS, "p-author", "u-editor", {"title": "edited"}))

    @pytest.mark.parametrize("requester", ["u-author", "u-editor", "u-admin"])
    def test_owner_id_is_immutable(self, policy, store, requester):
        with pytest.raises(PermissionDenied, match="ownerId cannot be changed"):
            _check(policy, store, Write("update", POSTS, "p-author", requester, {OWNER_FIELD: "u-sub"}))
        assert store.get_resource_owner(POSTS, "p-author") == "u-author"

    def test_resending_same_owner_is_allowed(self, policy, store):
        _check(policy, store, Write("update", POSTS, "p-author", "u-author", {OWNER_FIELD: "u-author", "title": "x"}))

    def test_missing_resource_is_denied_not_owned(self, policy, store):
        with pytest.raises(PermissionDenied, match="resource not found"):
            _check(policy, store, Write("delete", POSTS, "nope", "u-author"))

    def test_post_without_owner_is_not_own(self, policy, store):
        store._collections[POSTS]["orphan"] = {"title": "no owner"}
        with pytest.raises(PermissionDenied):
            _check(policy, store, Write("delete", POSTS, "orphan", "u-author"))

    def test_author_deletes_own_post(self, policy, store):
        _check(policy, store, Write("delete", POSTS, "p-author", "u-author"))
        assert store.get_document(POSTS, "p-author") is None


class TestTrustBoundary:
    def test_role_claim_in_payload_is_ignored(self, policy, store):
        write = Write("update", POSTS, "p-author", "u-sub", {"title": "x", "role": "admin"})
        with pytest.raises(PermissionDenied):
            _check(policy, store, write)

    def test_unknown_principal_has_no_role(self, policy, store):
        with pytest.raises(PermissionDenied):
            _check(policy, store, Write("create", COMMENTS, None, "ghost", {OWNER_FIELD: "ghost", "postId": "p-author"}))

    def test_unauthenticated_write_is_denied(self, policy, store):
        with pytest.raises(PermissionDenied):
            _check(policy, store, Write("create", COMMENTS, None, None, {"postId": "p-author"}))

    def test_stored_role_change_takes_effect_immediately(self, policy, store):
        store._collections[PROFILES]["u-author"]["role"] = "subscriber"
        with pytest.raises(PermissionDenied):
            _check(policy, store, Write("delete", POSTS, "p-author", "u-author"))

    def test_legacy_profile_field_is_honoured(self, policy, store):
        store._collections[PROFILES]["u-legacy"] = {"uid": "u-legacy", "profile": "editor"}
        _check(policy, store, Write("update", POSTS, "p-author", "u-legacy", {"title": "legacy"}))

    @pytest.mark.parametrize("stored", [" Admin ", "ADMIN"])
    def test_role_is_matched_exactly(self, policy, store, stored):
        store._collections[PROFILES]["u-padded"] = {"uid": "u-padded", "role": stored}
        with pytest.raises(PermissionDenied):
            _check(policy, store, Write("set", SITE, SITE_SETTINGS_ID, "u-padded", {"siteTitle": "x"}))

    def test_null_role_does_not_fall_back_to_legacy_field(self, policy, store):
        store._collections[PROFILES]["u-null"] = {"uid": "u-null", "role": None, "profile": "admin"}
        assert policy.role_of(_MemoryView(store), "u-null") is None
        with pytest.raises(PermissionDenied):
            _check(policy, store, Write("set", SITE, SITE_SETTINGS_ID, "u-null", {"siteTitle": "x"}))

    def test_unknown_role_string_is_least_privilege(self, policy, store):
        store._collections[PROFILES]["u-weird"] = {"uid": "u-weird", "role": "superadmin"}
        with pytest.raises(PermissionDenied):
            _check(policy, store, Write("update", POSTS, "p-author", "u-weird", {"title": "x"}))


class TestCommentsAndSite:
    def test_subscriber_comments(self, policy, store):
        _check(policy, store, Write("create", COMMENTS, None, "u-sub", {OWNER_FIELD: "u-sub", "postId": "p-author"}))

    def test_comments_cannot_be_edited(self, policy, store):
        cid = _check(policy, store, Write("create", COMMENTS, None, "u-sub", {OWNER_FIELD: "u-sub", "postId": "p-author"}))
        with pytest.raises(PermissionDenied, match="update is not permitted"):
            _check(policy, store, Write("update", COMMENTS, cid, "u-admin", {"content": "x"}))

    @pytest.mark.parametrize("requester,allowed", [("u-editor", True), ("u-author", False), ("u-sub", False)])
    def test_moderation(self, policy, store, requester, allowed):
        cid = _check(policy, store, Write("create", COMMENTS, None, "u-sub", {OWNER_FIELD: "u-sub", "postId": "p-author"}))
        write = Write("delete", COMMENTS, cid, requester)
        assert policy.allows(write, _MemoryView(store)) is allowed

    @pytest.mark.parametrize("requester,allowed", [("u-admin", True), ("u-editor", False), (None, False)])
    def test_site_settings_write(self, policy, store, requester, allowed):
        write = Write("set", SITE, SITE_SETTINGS_ID, requester, {"siteTitle": "New"})
        assert policy.allows(write, _MemoryView(store)) is allowed

    def test_unlisted_collection_is_denied(self, policy, store):
        with pytest.raises(PermissionDenied, match="no policy"):
            _check(policy, store, Write("create", "media", None, "u-admin", {}))


class TestProfiles:
    def test_self_create_as_subscriber(self, policy, store):
        _check(policy, store, Write("create", PROFILES, "u-new", "u-new", {"role": "subscriber"}))

    def test_self_create_as_admin_is_rejected(self, policy, store):
        with pytest.raises(PermissionDenied):
            _check(policy, store, Write("create", PROFILES, "u-new", "u-new", {"role": "admin"}))

    def test_creating_someone_elses_profile_is_rejected(self, policy, store):
        with pytest.raises(PermissionDenied):
            _check(policy, store, Write("create", PROFILES, "u-other", "u-new", {"role": "subscriber"}))

    @pytest.mark.parametrize("requester", ["u-admin", "u-sub"])
    def test_role_updates_are_rejected(self, policy, store, requester):
        with pytest.raises(PermissionDenied):
            _check(policy, store, Write("update", PROFILES, "u-sub", requester, {"role": "admin"}))
        assert store.get_profile("u-sub")["role"] == "subscriber"

