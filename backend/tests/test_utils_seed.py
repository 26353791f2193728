"""Test seeding utilities to reduce duplication.

These helpers centralize creation of users, roles and permissions plus the
client / appliance / service rows most repair-desk tests start from.
"""
import uuid
from typing import Iterable, Dict, Optional
from repairdesk import get_db
from repairdesk.models.authz import User, Role, Permission, RolePermission, UserRole
from repairdesk.models.client import Client, Appliance
from repairdesk.models.service import Service


def unique_email(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}@example.com"


def ensure_permissions(codes: Iterable[str]):
    """Ensure each permission code exists; return dict code->Permission."""
    session = get_db()
    out: Dict[str, Permission] = {}
    for code in codes:
        obj = session.query(Permission).filter_by(code=code).one_or_none()
        if not obj:
            if '.' not in code:
                raise ValueError(f"Permission code '{code}' missing SERVICE.ACTION pattern")
            service, action = code.split('.', 1)
            obj = Permission(code=code, service=service, action=action, description_i18n={'en': code})
            session.add(obj); session.flush()
        out[code] = obj
    session.commit()
    return out


def ensure_user(email: str, full_name: Optional[str] = None, password: str = 'pw', phone: Optional[str] = None) -> User:
    session = get_db()
    u = session.query(User).filter_by(email=email).one_or_none()
    if not u:
        u = User(full_name=full_name or email.split('@')[0], email=email, phone=phone, password_hash='')
        u.set_password(password)
        session.add(u); session.commit(); session.refresh(u)
    return u


def ensure_role(name: str, perm_codes: Iterable[str] = ()) -> Role:
    session = get_db()
    role = session.query(Role).filter_by(name=name).one_or_none()
    perms = ensure_permissions(perm_codes) if perm_codes else {}
    if not role:
        role = Role(name=name, is_system=False, description_i18n={'en': name})
        session.add(role); session.flush()
    existing_perm_ids = {rp.permission_id for rp in session.query(RolePermission).filter_by(role_id=role.id)}
    for p in perms.values():
        if p.id not in existing_perm_ids:
            session.add(RolePermission(role_id=role.id, permission_id=p.id))
    session.commit()
    return role


def ensure_user_role_assignment(user: User, role: Role):
    session = get_db()
    if not session.query(UserRole).filter_by(user_id=user.id, role_id=role.id).one_or_none():
        session.add(UserRole(user_id=user.id, role_id=role.id)); session.commit()


def seed_user_with_role(prefix: str, role_name: str, perm_codes: Iterable[str] = (), phone: Optional[str] = None) -> User:
    user = ensure_user(unique_email(prefix), phone=phone)
    role = ensure_role(role_name, perm_codes)
    ensure_user_role_assignment(user, role)
    return user


# ---------------- Domain helpers (clients / services) ---------------- #
def create_client(full_name: str = 'Marko Petrović', phone: Optional[str] = '064 123 4567',
                  email: Optional[str] = None, user_id: Optional[int] = None) -> Client:
    session = get_db()
    client = Client(full_name=full_name, phone=phone, email=email, city='Kotor', user_id=user_id)
    session.add(client); session.commit(); session.refresh(client)
    return client


def create_service(status: str = 'in_progress', technician: Optional[User] = None, client: Optional[Client] = None,
                   category: str = 'Veš mašina', created_by: int = 1, business_partner_id: Optional[int] = None) -> Service:
    """Create client (if omitted) + appliance + service directly in the DB with the given status."""
    session = get_db()
    client = client or create_client()
    appliance = Appliance(client_id=client.id, category=category, manufacturer='Beko', model='WTV')
    session.add(appliance); session.flush()
    service = Service(
        client_id=client.id,
        appliance_id=appliance.id,
        technician_id=technician.id if technician else None,
        business_partner_id=business_partner_id,
        status=status,
        description='Ne izbacuje vodu',
        created_by=created_by,
    )
    session.add(service); session.commit(); session.refresh(service)
    return service


__all__ = [
    'unique_email', 'ensure_permissions', 'ensure_user', 'ensure_role', 'ensure_user_role_assignment',
    'seed_user_with_role', 'create_client', 'create_service',
]
