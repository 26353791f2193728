from __future__ import annotations
from dataclasses import dataclass, field
from typing import FrozenSet, List, Set
from flask import abort
from flask_jwt_extended import get_jwt, get_jwt_identity
from sqlalchemy import select
from repairdesk.models.authz import User, UserRole, RolePermission, Permission, Role
from repairdesk.constants.permissions import (
    ROLE_ADMIN, ROLE_TECHNICIAN, ROLE_BUSINESS_PARTNER, ROLE_CUSTOMER, ROLE_PRESETS,
)
from repairdesk import get_db


@dataclass(frozen=True)
class Principal:
    """Who is calling. Built once per request from JWT claims and handed to the core explicitly."""
    user_id: int
    roles: FrozenSet[str] = field(default_factory=frozenset)
    perms: FrozenSet[str] = field(default_factory=frozenset)

    @property
    def is_admin(self) -> bool:
        return ROLE_ADMIN in self.roles

    @property
    def is_technician(self) -> bool:
        return ROLE_TECHNICIAN in self.roles

    @property
    def is_business_partner(self) -> bool:
        return ROLE_BUSINESS_PARTNER in self.roles

    @property
    def is_customer(self) -> bool:
        return ROLE_CUSTOMER in self.roles


def current_principal() -> Principal:
    claims = get_jwt()
    return Principal(
        user_id=int(get_jwt_identity()),
        roles=frozenset(claims.get('roles', [])),
        perms=frozenset(claims.get('perms', [])),
    )


def current_permissions() -> Set[str]:
    claims = get_jwt()
    return set(claims.get('perms', []))


def has_permissions(*codes: str) -> bool:
    perms = current_permissions()
    return all(c in perms for c in codes)


def compute_effective_permissions(user_id: int):
    session = get_db()
    role_ids = [r.role_id for r in session.execute(select(UserRole).where(UserRole.user_id==user_id)).scalars()]
    roles = []
    perm_codes = set()
    if role_ids:
        roles = [r.name for r in session.execute(select(Role).where(Role.id.in_(role_ids))).scalars()]
        role_perms = session.execute(select(RolePermission).where(RolePermission.role_id.in_(role_ids))).scalars().all()
        perm_ids = [rp.permission_id for rp in role_perms]
        if perm_ids:
            for p in session.execute(select(Permission).where(Permission.id.in_(perm_ids))).scalars():
                perm_codes.add(p.code)
    # Administrator wildcard: every permission that exists
    if any(ROLE_PRESETS.get(name) == ['*'] for name in roles):
        for p in session.execute(select(Permission)).scalars():
            perm_codes.add(p.code)
    return {
        'roles': sorted(roles),
        'perms': sorted(perm_codes),
    }


def users_with_role(session, role_name: str) -> List[User]:
    stmt = (
        select(User)
        .join(UserRole, UserRole.user_id == User.id)
        .join(Role, Role.id == UserRole.role_id)
        .where(Role.name == role_name, User.is_active.is_(True))
        .order_by(User.id)
    )
    return list(session.execute(stmt).scalars().unique())


def can_access_service(principal: Principal, service, client_user_id=None) -> bool:
    """Admins and suppliers see everything; other roles only see services tied to them."""
    if principal.is_admin or not (principal.is_technician or principal.is_business_partner or principal.is_customer):
        return True
    if principal.is_technician and service.technician_id == principal.user_id:
        return True
    if principal.is_business_partner and service.business_partner_id == principal.user_id:
        return True
    if principal.is_customer and client_user_id is not None and client_user_id == principal.user_id:
        return True
    return False


def assert_service_access(principal: Principal, service, client_user_id=None):
    if not can_access_service(principal, service, client_user_id):
        abort(403, description='Service access denied')


def client_user_id_for(session, service):
    from repairdesk.models.client import Client
    client = session.get(Client, service.client_id)
    return client.user_id if client else None


def check_service_access(session, principal: Principal, service):
    """assert_service_access, resolving the customer account behind the service's client."""
    client_user_id = client_user_id_for(session, service) if principal.is_customer else None
    assert_service_access(principal, service, client_user_id)
