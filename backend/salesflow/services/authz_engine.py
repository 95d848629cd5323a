"""In-memory role -> (action, resource) decision structure.

The engine holds one immutable GrantSnapshot. Decisions read whatever snapshot is current;
rebuild() constructs a complete replacement off to the side and publishes it with a single
attribute assignment, so a concurrent reader sees either the old or the new grant set.

Usage:
    engine = AuthorizationEngine()
    engine.rebuild(lambda: load_grant_rows(session))   # store rows, or fallback if none / error
    engine.decide(['sales-person'], 'createAny', 'sales-funnel').granted
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Callable, Dict, FrozenSet, Iterable, Optional, Sequence, Tuple
import itertools
import logging
import threading

from salesflow.constants.permissions import FALLBACK_ROLES, ROLE_SUPER_ADMIN
from salesflow.errors import Unauthorized

logger = logging.getLogger(__name__)

Grant = Tuple[str, str]  # (action, resource)
GrantRow = Tuple[str, str, str]  # (role, action, resource)

SOURCE_STORE = 'store'
SOURCE_FALLBACK = 'fallback'

_versions = itertools.count(1)


def _with_implied(grants: Iterable[Grant]) -> FrozenSet[Grant]:
    """An ``xxxAny`` grant also satisfies the matching ``xxxOwn`` check."""
    out = set()
    for action, resource in grants:
        out.add((action, resource))
        if action.endswith('Any'):
            out.add((action[:-3] + 'Own', resource))
    return frozenset(out)


def flatten_role_hierarchy(definitions: Dict[str, Tuple[Optional[str], Sequence[Grant]]]) -> Dict[str, FrozenSet[Grant]]:
    """Resolve ``parent`` links into concrete per-role grant sets.

    definitions: role -> (parent role or None, own grants). Raises ValueError on unknown
    parents or cycles.
    """
    flat: Dict[str, FrozenSet[Grant]] = {}

    def resolve(role: str, trail: Tuple[str, ...]) -> FrozenSet[Grant]:
        if role in flat:
            return flat[role]
        if role in trail:
            raise ValueError(f"Role hierarchy cycle: {' -> '.join(trail + (role,))}")
        if role not in definitions:
            raise ValueError(f'Unknown parent role {role!r}')
        parent, own = definitions[role]
        inherited = resolve(parent, trail + (role,)) if parent else frozenset()
        flat[role] = inherited | _with_implied(own)
        return flat[role]

    for name in definitions:
        resolve(name, ())
    return flat


FALLBACK_GRANTS: Dict[str, FrozenSet[Grant]] = flatten_role_hierarchy(FALLBACK_ROLES)


@dataclass(frozen=True)
class GrantSnapshot:
    grants: Dict[str, FrozenSet[Grant]]
    source: str
    version: int = field(default_factory=lambda: next(_versions))

    @property
    def grant_count(self) -> int:
        return sum(len(g) for g in self.grants.values())

    @classmethod
    def from_rows(cls, rows: Iterable[GrantRow]) -> 'GrantSnapshot':
        by_role: Dict[str, set] = {}
        for row in rows:
            role, action, resource = row
            if not role or not action or not resource:
                continue
            by_role.setdefault(role, set()).add((action, resource))
        return cls({r: _with_implied(g) for r, g in by_role.items()}, SOURCE_STORE)

    @classmethod
    def fallback(cls) -> 'GrantSnapshot':
        return cls(dict(FALLBACK_GRANTS), SOURCE_FALLBACK)


@dataclass(frozen=True)
class Decision:
    granted: bool
    role: Optional[str] = None
    reason: str = ''


class AuthorizationEngine:
    def __init__(self, snapshot: Optional[GrantSnapshot] = None):
        self._snapshot = snapshot or GrantSnapshot.fallback()
        self._rebuild_lock = threading.Lock()

    @property
    def snapshot(self) -> GrantSnapshot:
        return self._snapshot

    def build(self, rows: Iterable[GrantRow]) -> GrantSnapshot:
        """Build (but do not install) a snapshot; zero usable rows means fallback."""
        snapshot = GrantSnapshot.from_rows(rows)
        if not snapshot.grants:
            logger.warning('No role-permission rows in grant store; using fallback grants')
            return GrantSnapshot.fallback()
        return snapshot

    def rebuild(self, loader: Callable[[], Iterable[GrantRow]]) -> GrantSnapshot:
        """Load rows via ``loader`` and install the result.

        A loader failure is recovered here: it is logged and the fallback set installed.
        """
        with self._rebuild_lock:
            try:
                rows = list(loader())
            except Exception:
                logger.warning('Grant store read failed; using fallback grants', exc_info=True)
                rows = []
            snapshot = self.build(rows)
            self._snapshot = snapshot
        logger.info('Authorization grants loaded from %s (version=%s, roles=%d, grants=%d)',
                    snapshot.source, snapshot.version, len(snapshot.grants), snapshot.grant_count)
        return snapshot

    def decide(self, roles: Sequence[str], action: str, resource: str) -> Decision:
        snapshot = self._snapshot  # single read; the whole decision uses one snapshot
        if not roles:
            return Decision(False, None, 'Unauthorized: empty role set')
        for role in roles:
            if role == ROLE_SUPER_ADMIN:
                return Decision(True, role, 'super-admin bypass')
            if (action, resource) in snapshot.grants.get(role, ()):
                return Decision(True, role, f'{role} may {action} {resource}')
        return Decision(False, None, f"Forbidden: {', '.join(roles)} cannot {action} on {resource}")

    def can(self, roles: Sequence[str], action: str, resource: str) -> bool:
        return self.decide(roles, action, resource).granted

    def check(self, roles: Sequence[str], action: str, resource: str) -> Decision:
        """decide() for request boundaries: raises Unauthorized when denied."""
        decision = self.decide(roles, action, resource)
        if not decision.granted:
            raise Unauthorized(decision.reason)
        return decision

    def check_any(self, roles: Sequence[str], actions: Sequence[str], resource: str) -> Decision:
        """Granted if any of ``actions`` is granted; first match in ``actions`` order wins."""
        for action in actions:
            decision = self.decide(roles, action, resource)
            if decision.granted:
                return decision
        raise Unauthorized(f"Forbidden: {', '.join(roles) or 'no role'} cannot {'/'.join(actions)} on {resource}")


__all__ = [
    'AuthorizationEngine', 'GrantSnapshot', 'Decision', 'flatten_role_hierarchy',
    'FALLBACK_GRANTS', 'SOURCE_STORE', 'SOURCE_FALLBACK',
]
