"""
tests/test_passwords_and_roles.py -- bcrypt hashing and role derivation.
"""

from __future__ import annotations

import pytest

from auth.models import Account
from auth.passwords import DUMMY_HASH, hash_password, verify_password
from auth.roles import Role, derive_role, home_path, parse_role, user_type_label

OWNER = "semprecheioapp@gmail.com"


class TestPasswords:
    def test_hash_verifies(self) -> None:
        hashed = hash_password("123456")
        assert hashed.startswith("$2b$")
        assert verify_password("123456", hashed)
        assert not verify_password("1234567", hashed)

    def test_hashes_are_salted(self) -> None:
        assert hash_password("123456") != hash_password("123456")

    def test_empty_password_hashes(self) -> None:
        assert verify_password("", hash_password(""))

    def test_long_password_truncated_at_72_bytes(self) -> None:
        base = "x" * 72
        hashed = hash_password(base + "tail")
        assert verify_password(base, hashed)

    @pytest.mark.parametrize("bad", [None, "", "not-a-bcrypt-hash", "$2b$04$short"])
    def test_missing_or_corrupt_hash_is_false(self, bad) -> None:
        assert verify_password("123456", bad) is False

    def test_dummy_hash_never_matches_common_input(self) -> None:
        assert verify_password("", DUMMY_HASH) is False


class TestRoleDerivation:
    def _account(self, **kw) -> Account:
        return Account(email=kw.pop("email", "x@y.com"), name="X", **kw)

    def test_stored_role_wins(self) -> None:
        assert derive_role(self._account(role="admin", email=OWNER), OWNER) is Role.ADMIN

    def test_legacy_service_type_marker(self) -> None:
        assert derive_role(self._account(service_type="super_admin"), OWNER) is Role.SUPER_ADMIN

    def test_owner_email_without_stored_role(self) -> None:
        assert derive_role(self._account(email=OWNER), OWNER) is Role.SUPER_ADMIN

    def test_owner_email_match_is_exact(self) -> None:
        assert derive_role(self._account(email=OWNER.upper()), OWNER) is Role.USER

    def test_unrecognized_stored_role_falls_through(self) -> None:
        assert derive_role(self._account(role="gerente"), OWNER) is Role.USER

    def test_no_marker_is_user(self) -> None:
        assert derive_role(self._account(), OWNER) is Role.USER


class TestRoleHelpers:
    def test_parse_role(self) -> None:
        assert parse_role("super_admin") is Role.SUPER_ADMIN
        assert parse_role("nope") is None
        assert parse_role(None) is None

    @pytest.mark.parametrize(
        ("role", "label", "path"),
        [
            ("super_admin", "Super Admin", "/super-admin"),
            ("admin", "Admin da Empresa", "/admin"),
            ("user", "Usuário", "/dashboard"),
            (Role.ADMIN, "Admin da Empresa", "/admin"),
        ],
    )
    def test_labels_and_home_paths(self, role, label: str, path: str) -> None:
        assert user_type_label(role) == label
        assert home_path(role) == path
