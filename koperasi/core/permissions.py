"""Role/division capability sets.

The authenticating gateway forwards who the caller is through the
``X-User-Role`` and ``X-User-Division`` headers. Each request turns them into
a :class:`SessionContext` once; routers then ask for a :class:`Permission`
instead of matching role strings.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Depends, Header

from koperasi.core.exceptions import PermissionDeniedError


class Role(str, Enum):
    ADMIN = "admin"
    PENGURUS = "pengurus"
    KARYAWAN = "karyawan"
    MASYARAKAT = "masyarakat"


class Division(str, Enum):
    PERDAGANGAN = "perdagangan"
    SIMPAN_PINJAM = "simpan_pinjam"
    PARIWISATA = "pariwisata"
    PRODUKSI = "produksi"
    ADMINISTRASI = "administrasi"


class Permission(str, Enum):
    VIEW_LOANS = "view_loans"
    MANAGE_LOANS = "manage_loans"
    DELETE_LOANS = "delete_loans"
    RECORD_PAYMENTS = "record_payments"
    DELETE_PAYMENTS = "delete_payments"
    VIEW_FINANCE = "view_finance"
    MANAGE_SETTINGS = "manage_settings"


STAFF_ROLES = frozenset({Role.ADMIN, Role.PENGURUS, Role.KARYAWAN})
BOARD_ROLES = frozenset({Role.ADMIN, Role.PENGURUS})
LOAN_DIVISIONS = frozenset({Division.SIMPAN_PINJAM, Division.ADMINISTRASI})
FINANCE_DIVISIONS = frozenset({Division.ADMINISTRASI})


def capabilities(role: Role, division: Optional[Division]) -> frozenset:
    """Return the permissions held by ``role`` working in ``division``.

    Admins bypass the division check.
    """
    granted = set()

    def in_division(allowed) -> bool:
        return role == Role.ADMIN or division in allowed

    if role in STAFF_ROLES and in_division(LOAN_DIVISIONS):
        granted |= {
            Permission.VIEW_LOANS,
            Permission.MANAGE_LOANS,
            Permission.RECORD_PAYMENTS,
        }
        if role in BOARD_ROLES:
            granted |= {Permission.DELETE_LOANS, Permission.DELETE_PAYMENTS}

    if role in BOARD_ROLES and in_division(FINANCE_DIVISIONS):
        granted.add(Permission.VIEW_FINANCE)

    if role == Role.ADMIN:
        granted.add(Permission.MANAGE_SETTINGS)

    return frozenset(granted)


@dataclass(frozen=True)
class SessionContext:
    role: Role
    division: Optional[Division]
    permissions: frozenset

    def require(self, permission: Permission) -> None:
        if permission not in self.permissions:
            raise PermissionDeniedError(
                f"Role '{self.role.value}' may not {permission.value.replace('_', ' ')}"
            )


def get_session_context(
        x_user_role: Optional[str] = Header(None),
        x_user_division: Optional[str] = Header(None),
) -> SessionContext:
    try:
        role = Role(x_user_role) if x_user_role else Role.MASYARAKAT
        division = Division(x_user_division) if x_user_division else None
    except ValueError as e:
        raise PermissionDeniedError(f"Unknown session context: {e}") from e

    return SessionContext(
        role=role,
        division=division,
        permissions=capabilities(role, division),
    )


def require(permission: Permission):
    """FastAPI dependency factory: ``Depends(require(Permission.VIEW_LOANS))``."""

    def checker(ctx: SessionContext = Depends(get_session_context)) -> SessionContext:
        ctx.require(permission)
        return ctx

    return checker
