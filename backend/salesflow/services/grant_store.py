from __future__ import annotations
from typing import Iterable, List, Sequence, Tuple
from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from salesflow.models.authz import Role, Permission, RolePermission, User, UserRole


def load_grant_rows(session: Session) -> List[Tuple[str, str, str]]:
    """All (role, action, resource) triples, ordered for reproducible builds."""
    stmt = (
        select(Role.name, Permission.action, Permission.resource)
        .join(RolePermission, RolePermission.role_id == Role.id)
        .join(Permission, RolePermission.permission_id == Permission.id)
        .order_by(Role.name, Permission.resource, Permission.action)
    )
    return [tuple(row) for row in session.execute(stmt).all()]


def replace_role_permissions(session: Session, role: Role, permission_ids: Iterable[int]) -> List[Permission]:
    """Replace the grant set of ``role``. Raises LookupError listing unknown permission ids.

    Flushes but does not commit; the caller owns the transaction.
    """
    wanted = list(dict.fromkeys(int(pid) for pid in permission_ids))
    perms = session.execute(select(Permission).where(Permission.id.in_(wanted))).scalars().all() if wanted else []
    missing = set(wanted) - {p.id for p in perms}
    if missing:
        raise LookupError(f'Unknown permission ids: {sorted(missing)}')
    session.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
    for p in perms:
        session.add(RolePermission(role_id=role.id, permission_id=p.id))
    session.flush()
    session.expire(role, ['permissions'])
    return sorted(perms, key=lambda p: p.id)


def set_user_roles(session: Session, user: User, role_names: Sequence[str]) -> List[str]:
    """Replace a user's roles keeping the given order (assignment order is decision order)."""
    roles = {r.name: r for r in session.execute(select(Role).where(Role.name.in_(list(role_names)))).scalars()}
    missing = [n for n in role_names if n not in roles]
    if missing:
        raise LookupError(f'Unknown roles: {missing}')
    session.execute(delete(UserRole).where(UserRole.user_id == user.id))
    for name in role_names:
        session.add(UserRole(user_id=user.id, role_id=roles[name].id))
    session.flush()
    session.expire(user, ['user_roles'])
    return list(role_names)


__all__ = ['load_grant_rows', 'replace_role_permissions', 'set_user_roles']
