#!/usr/bin/env python
"""Idempotent seed script for permissions, roles and the first administrator.

Usage:
    python backend/scripts/seed_authz.py               # seed normally
    python backend/scripts/seed_authz.py --show-roles  # print role -> permission counts after seeding
    python backend/scripts/seed_authz.py --dry-run     # run logic then rollback (no DB changes)
"""
from __future__ import annotations
import os, sys, argparse
from sqlalchemy import select

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from repairdesk import create_app, get_db  # noqa: E402
from repairdesk.models.authz import Base, Permission, Role, RolePermission, User, UserRole  # noqa: E402
from repairdesk.models import audit, client, service, spare_part_order, removed_part, notification  # noqa: E402,F401
from repairdesk.constants.permissions import SERVICE_ACTIONS, ROLE_PRESETS, ROLE_ADMIN, ALL_PERMISSION_CODES  # noqa: E402


def ensure_permissions(session):
    existing = {p.code for p in session.execute(select(Permission)).scalars().all()}
    created = 0
    for svc, actions in SERVICE_ACTIONS.items():
        for act in actions:
            code = f"{svc}.{act}"
            if code not in existing:
                session.add(Permission(code=code, service=svc, action=act, description_i18n={"en": code.replace('.', ' - ')}))
                created += 1
    session.flush()
    return created


def ensure_roles(session):
    existing_roles = {r.name: r for r in session.execute(select(Role)).scalars().all()}
    created = 0
    for role_name in ROLE_PRESETS:
        if role_name not in existing_roles:
            role = Role(name=role_name, is_system=True, description_i18n={"en": role_name})
            session.add(role)
            existing_roles[role_name] = role
            created += 1
    session.flush()

    perms_map = {p.code: p for p in session.execute(select(Permission)).scalars()}
    for role_name, role in existing_roles.items():
        raw_codes = ROLE_PRESETS.get(role_name, [])
        desired_codes = set(ALL_PERMISSION_CODES) if '*' in raw_codes else set(raw_codes)
        current_codes = {rp.permission.code for rp in role.permissions}
        for code in sorted(desired_codes - current_codes):
            if code not in perms_map:
                print(f"[WARN] Missing permission referenced by role {role_name}: {code}")
                continue
            session.add(RolePermission(role=role, permission=perms_map[code]))
    return created


def ensure_initial_admin(session):
    admin_role = session.execute(select(Role).where(Role.name == ROLE_ADMIN)).scalar_one_or_none()
    if not admin_role:
        print('[WARN] Administrator role missing; skipping admin user creation')
        return
    admin_email = os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com')
    existing_admin = session.execute(select(User).where(User.email == admin_email)).scalar_one_or_none()
    if not existing_admin:
        user = User(full_name='Administrator', email=admin_email, phone=os.getenv('SEED_ADMIN_PHONE'), password_hash='')
        user.set_password(os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
        session.add(user)
        session.flush()
        session.add(UserRole(user_id=user.id, role_id=admin_role.id))
        print(f"[INFO] Created initial admin user {admin_email} with temporary password.")


def print_role_summary(session):
    rows = []
    for role in session.execute(select(Role)).scalars().all():
        perms = sorted(rp.permission.code for rp in role.permissions)
        rows.append((role.name, len(perms), perms[:8]))
    if not rows:
        print("[INFO] No roles present.")
        return
    name_w = max(len(r[0]) for r in rows)
    print(f"{'Role'.ljust(name_w)} | Count | Sample (up to 8)")
    print('-' * (name_w + 40))
    for name, cnt, sample in rows:
        print(f"{name.ljust(name_w)} | {str(cnt).rjust(5)} | {', '.join(sample)}")


def parse_args():
    p = argparse.ArgumentParser(description="Seed repair desk permissions, roles and admin user")
    p.add_argument('--show-roles', action='store_true', help='Print role permission counts after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--create-schema', action='store_true', help='Create missing tables first (prefer alembic upgrade)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        if args.create_schema:
            Base.metadata.create_all(session.get_bind())
        try:
            created_p = ensure_permissions(session)
            created_r = ensure_roles(session)
            ensure_initial_admin(session)
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) Permissions would create: {created_p}, Roles would create: {created_r}")
            else:
                session.commit()
                print(f"[DONE] Permissions created: {created_p}, Roles created: {created_r}")
            if args.show_roles:
                print('\nRole Permission Summary:')
                print_role_summary(session)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

if __name__ == '__main__':
    main()
