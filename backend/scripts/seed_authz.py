#!/usr/bin/env python
"""Idempotent seed script for roles, permissions & the initial super-admin.

Usage:
    python backend/scripts/seed_authz.py               # seed normally
    python backend/scripts/seed_authz.py --show-roles  # print role -> permission counts (after ensuring seed)
    python backend/scripts/seed_authz.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed_authz.py --dry-run --show-roles
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import select, text

# Allow running from repo root or from backend/
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from salesflow import create_app, get_db, grant_loader  # noqa: E402
from salesflow.models.authz import Base, Permission, Role, RolePermission, User, UserRole  # noqa: E402
from salesflow.constants.permissions import ROLES, ROLE_PRESETS, SEED_PERMISSIONS, ROLE_SUPER_ADMIN  # noqa: E402
from salesflow.services.policy import authz_engine  # noqa: E402


def ensure_permissions(session):
    existing = {(p.action, p.resource) for p in session.execute(select(Permission)).scalars().all()}
    created = 0
    for action, resource in SEED_PERMISSIONS:
        if (action, resource) not in existing:
            session.add(Permission(action=action, resource=resource))
            created += 1
    session.flush()
    return created


def ensure_roles(session):
    """Create missing roles and add any preset grants they lack. Extra grants are left alone."""
    existing_roles = {r.name: r for r in session.execute(select(Role)).scalars().all()}
    created = 0
    for role_name in ROLES:
        if role_name not in existing_roles:
            role = Role(name=role_name)
            session.add(role)
            existing_roles[role_name] = role
            created += 1
    session.flush()

    perms = {(p.action, p.resource): p for p in session.execute(select(Permission)).scalars().all()}
    linked = 0
    for role_name, grants in ROLE_PRESETS.items():
        role = existing_roles[role_name]
        desired = set(perms) if ('*', '*') in grants else set(grants)
        current = {
            (p.action, p.resource)
            for p in session.execute(
                select(Permission).join(RolePermission, RolePermission.permission_id == Permission.id)
                .where(RolePermission.role_id == role.id)
            ).scalars()
        }
        for key in sorted(desired - current):
            if key not in perms:
                print(f"[WARN] Missing permission referenced by role {role_name}: {key[0]} {key[1]}")
                continue
            session.add(RolePermission(role_id=role.id, permission_id=perms[key].id))
            linked += 1
    session.flush()
    return created, linked


def ensure_initial_admin(session):
    role = session.execute(select(Role).where(Role.name == ROLE_SUPER_ADMIN)).scalar_one_or_none()
    if not role:
        print('[WARN] super-admin role missing; skipping admin user creation')
        return None
    admin_email = os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com').strip().lower()
    existing_admin = session.execute(select(User).where(User.email == admin_email)).scalar_one_or_none()
    if existing_admin:
        return None
    user = User(name='Super Admin', email=admin_email, short_form='SA', password_hash='')
    user.set_password(os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
    session.add(user)
    session.flush()
    session.add(UserRole(user_id=user.id, role_id=role.id))
    session.flush()
    print(f"[INFO] Created initial super-admin user {admin_email} with temporary password.")
    return user


def seed(session):
    """Run every ensure_* step in the caller's transaction; returns creation counts."""
    created_p = ensure_permissions(session)
    created_r, linked = ensure_roles(session)
    admin = ensure_initial_admin(session)
    return {'permissions': created_p, 'roles': created_r, 'grants': linked, 'admin_created': admin is not None}


def print_role_summary(session):
    rows = []
    for role_name, action, resource in grant_loader():
        rows.append((role_name, f'{action}:{resource}'))
    if not rows:
        print("[INFO] No role grants present.")
        return
    by_role = {}
    for role_name, grant in rows:
        by_role.setdefault(role_name, []).append(grant)
    name_w = max(len(r) for r in by_role)
    print(f"{'Role'.ljust(name_w)} | Count | Sample (up to 8)")
    print('-' * (name_w + 40))
    for name in sorted(by_role):
        grants = by_role[name]
        print(f"{name.ljust(name_w)} | {str(len(grants)).rjust(5)} | {', '.join(grants[:8])}")


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Seed RBAC roles, permissions & the initial super-admin",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_authz.py\n  dry run: seed_authz.py --dry-run\n  show roles: seed_authz.py --show-roles\n""")
    )
    p.add_argument('--show-roles', action='store_true', help='Print role grant counts after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    return p.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    app = create_app()
    with app.app_context():
        session = get_db()
        try:
            session.execute(text('SELECT 1 FROM permissions LIMIT 1'))
        except Exception:
            # Bootstrap schema when migrations have not run; prefer `alembic upgrade head`
            session.rollback()
            Base.metadata.create_all(session.get_bind())
        session.commit()

        counts = seed(session)
        if args.show_roles:
            print_role_summary(session)
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) would create: {counts}")
        else:
            session.commit()
            authz_engine().rebuild(grant_loader)
            print(f"[DONE] created: {counts}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
