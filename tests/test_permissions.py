"""Tests for role/division capability sets."""

import pytest

from koperasi.core.exceptions import PermissionDeniedError
from koperasi.core.permissions import (
    Division,
    Permission,
    Role,
    SessionContext,
    capabilities,
    get_session_context,
)


class TestCapabilities:
    def test_admin_bypasses_division(self) -> None:
        granted = capabilities(Role.ADMIN, None)
        assert granted == frozenset(Permission)

    def test_karyawan_in_loans_division(self) -> None:
        granted = capabilities(Role.KARYAWAN, Division.SIMPAN_PINJAM)
        assert granted == {Permission.VIEW_LOANS, Permission.MANAGE_LOANS, Permission.RECORD_PAYMENTS}

    def test_karyawan_elsewhere(self) -> None:
        assert capabilities(Role.KARYAWAN, Division.PARIWISATA) == frozenset()

    def test_pengurus_administrasi(self) -> None:
        granted = capabilities(Role.PENGURUS, Division.ADMINISTRASI)
        assert Permission.DELETE_PAYMENTS in granted
        assert Permission.VIEW_FINANCE in granted
        assert Permission.MANAGE_SETTINGS not in granted

    def test_pengurus_simpan_pinjam_has_no_finance(self) -> None:
        granted = capabilities(Role.PENGURUS, Division.SIMPAN_PINJAM)
        assert Permission.DELETE_LOANS in granted
        assert Permission.VIEW_FINANCE not in granted

    def test_masyarakat(self) -> None:
        assert capabilities(Role.MASYARAKAT, Division.ADMINISTRASI) == frozenset()


class TestSessionContext:
    def test_from_headers(self) -> None:
        ctx = get_session_context(x_user_role="karyawan", x_user_division="simpan_pinjam")
        assert ctx.role == Role.KARYAWAN
        assert ctx.division == Division.SIMPAN_PINJAM
        ctx.require(Permission.RECORD_PAYMENTS)

    def test_missing_headers_is_public(self) -> None:
        ctx = get_session_context(x_user_role=None, x_user_division=None)
        assert ctx.role == Role.MASYARAKAT
        assert ctx.permissions == frozenset()

    def test_unknown_role(self) -> None:
        with pytest.raises(PermissionDeniedError):
            get_session_context(x_user_role="root", x_user_division=None)

    def test_require_denies(self) -> None:
        ctx = SessionContext(role=Role.KARYAWAN, division=None, permissions=frozenset())
        with pytest.raises(PermissionDeniedError, match="may not delete payments"):
            ctx.require(Permission.DELETE_PAYMENTS)
