"""
Tests for the host role signal.
"""

import pytest

from pkg.boardinfo.roles import EditGuard, ReadOnlyViolation, is_privileged


class TestIsPrivileged:

    @pytest.mark.parametrize("user", [
        {"role": "admin"},
        {"role": "Owner"},
        {"role": " ADMIN "},
        {"isAccountOwner": True},
        {"is_account_owner": "true"},
        {"role": "member", "isAccountOwner": True},
        {"role": "admin", "isAccountOwner": False},
    ])
    def test_privileged(self, user):
        assert is_privileged(user)

    @pytest.mark.parametrize("user", [
        None,
        {},
        {"role": "member"},
        {"role": "guest", "isAccountOwner": False},
        {"isAccountOwner": "no"},
        {"role": 1},
    ])
    def test_not_privileged(self, user):
        assert not is_privileged(user)


class TestEditGuard:

    def test_privileged_passes(self):
        EditGuard(privileged=True).require_editor("create section")

    def test_viewer_rejected(self):
        with pytest.raises(ReadOnlyViolation, match="create section"):
            EditGuard(privileged=False).require_editor("create section")
