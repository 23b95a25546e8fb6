import pytest

from pressgate.core.errors import PolicyMismatch
from pressgate.core.permissions import (
    RULES, _check_exhaustive, allowed_actions, decide, evaluate, grant_for, is_owner,
)
from pressgate.core.roles import Action, Grant, Role, stored_role

ALL_OWNERSHIP = (True, False, None)


class TestScenarios:
    def test_contributor_edits_only_own_post(self):
        assert evaluate(Role.CONTRIBUTOR, Action.EDIT_POST, True) is True
        assert evaluate(Role.CONTRIBUTOR, Action.EDIT_POST, False) is False

    def test_author_deletes_only_own_post(self):
        assert evaluate(Role.AUTHOR, Action.DELETE_POST, False) is False
        assert evaluate(Role.AUTHOR, Action.DELETE_POST, True) is True

    @pytest.mark.parametrize("ownership", ALL_OWNERSHIP)
    def test_editor_moderates_regardless_of_ownership(self, ownership):
        assert evaluate(Role.EDITOR, Action.MODERATE_COMMENT, ownership) is True

    def test_unauthenticated_reads_but_cannot_comment(self):
        assert evaluate(None, Action.READ_POST) is True
        assert evaluate(None, Action.CREATE_COMMENT) is False

    def test_only_admin_writes_site_config(self):
        assert [r for r in Role if evaluate(r, Action.WRITE_SITE_CONFIG)] == [Role.ADMIN]

    def test_contributor_cannot_create_posts(self):
        assert evaluate(Role.CONTRIBUTOR, Action.CREATE_POST) is False
        assert evaluate(Role.AUTHOR, Action.CREATE_POST) is True


class TestLeastPrivilege:
    @pytest.mark.parametrize("action", [a for a in Action if a not in (
        Action.READ_POST, Action.CREATE_COMMENT, Action.READ_SITE_CONFIG)])
    @pytest.mark.parametrize("role", [Role.SUBSCRIBER, None])
    @pytest.mark.parametrize("ownership", ALL_OWNERSHIP)
    def test_subscriber_and_anonymous_denied(self, role, action, ownership):
        assert evaluate(role, action, ownership) is False

    @pytest.mark.parametrize("role", list(Role))
    @pytest.mark.parametrize("action", list(Action))
    def test_unknown_ownership_never_satisfies_own_grant(self, role, action):
        if grant_for(role, action) is Grant.OWN:
            assert evaluate(role, action, None) is False
            assert evaluate(role, action, True) is True

    def test_site_config_read_follows_setting(self):
        assert evaluate(None, Action.READ_SITE_CONFIG, public_site_config=True) is True
        assert evaluate(None, Action.READ_SITE_CONFIG, public_site_config=False) is False
        assert evaluate(Role.SUBSCRIBER, Action.READ_SITE_CONFIG, public_site_config=False) is True


class TestTable:
    def test_every_action_covers_every_role(self):
        assert set(RULES) == set(Action)
        for row in RULES.values():
            assert set(row) == set(Role)

    def test_missing_role_is_rejected(self):
        broken = {a: dict(row) for a, row in RULES.items()}
        del broken[Action.EDIT_POST][Role.AUTHOR]
        with pytest.raises(PolicyMismatch, match="EditPost"):
            _check_exhaustive(broken)

    def test_missing_action_is_rejected(self):
        broken = {a: row for a, row in RULES.items() if a is not Action.MODERATE_COMMENT}
        with pytest.raises(PolicyMismatch, match="ModerateComment"):
            _check_exhaustive(broken)

    def test_decide_wraps_result(self):
        decision = decide(Role.AUTHOR, Action.EDIT_POST, False)
        assert decision.action is Action.EDIT_POST
        assert decision.allowed is False

    def test_allowed_actions_for_editor(self):
        allowed = allowed_actions(Role.EDITOR)
        assert allowed[Action.MODERATE_COMMENT] and allowed[Action.EDIT_POST]
        assert not allowed[Action.WRITE_SITE_CONFIG]


class TestOwnershipAndRoles:
    def test_is_owner(self):
        assert is_owner("a", "a") is True
        assert is_owner("a", "b") is False
        assert is_owner("a", None) is None
        assert is_owner(None, "a") is None

    @pytest.mark.parametrize("raw,expected", [
        ("editor", Role.EDITOR),
        (" Admin ", None),
        ("ADMIN", None),
        ("superuser", None),
        (None, None),
        (3, None),
        (Role.AUTHOR, Role.AUTHOR),
    ])
    def test_role_parse(self, raw, expected):
        assert Role.parse(raw) is expected

    @pytest.mark.parametrize("doc,expected", [
        ({"role": "editor"}, Role.EDITOR),
        ({"profile": "author"}, Role.AUTHOR),
        ({"role": "author", "profile": "admin"}, Role.AUTHOR),
        ({"role": None, "profile": "admin"}, None),
        ({"role": "Admin", "profile": "admin"}, None),
        ({}, None),
    ])
    def test_stored_role(self, doc, expected):
        assert stored_role(doc) is expected
