"""Sales Funnel creation rule layered on top of the authorization engine.

Creating a Sales Funnel needs two independent things:
  1. baseline permission: createAny or createOwn on sales-funnel (AuthorizationEngine)
  2. the gate: actor holds an exempt role, or the RFQ progress is one of
     SALES_FUNNEL_ALLOWED_PROGRESS.

The exempt role set is configuration (WORKFLOW_GATE_EXEMPT_ROLES). super-admin passes the
gate regardless, matching its unconditional bypass in the engine.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence, Tuple

from salesflow.constants.permissions import ROLE_SUPER_ADMIN, SALES_FUNNEL_ALLOWED_PROGRESS
from salesflow.errors import WorkflowGateDenied
from salesflow.services.authz_engine import AuthorizationEngine, Decision

RESOURCE = 'sales-funnel'
BASELINE_ACTIONS = ('createAny', 'createOwn')


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: str
    exempt_role: Optional[str] = None


class WorkflowGate:
    def __init__(self, engine: AuthorizationEngine, exempt_roles: Iterable[str],
                 allowed_progress: Sequence[str] = SALES_FUNNEL_ALLOWED_PROGRESS):
        self.engine = engine
        self.exempt_roles: Tuple[str, ...] = tuple(exempt_roles)
        self.allowed_progress: Tuple[str, ...] = tuple(allowed_progress)

    def _exempt_role(self, roles: Sequence[str]) -> Optional[str]:
        for role in roles:
            if role == ROLE_SUPER_ADMIN or role in self.exempt_roles:
                return role
        return None

    def can_create_sales_funnel(self, roles: Sequence[str], rfq_progress: Optional[str]) -> GateDecision:
        exempt = self._exempt_role(roles)
        if exempt:
            return GateDecision(True, f'{exempt} is exempt from the RFQ progress rule', exempt)
        if rfq_progress in self.allowed_progress:
            return GateDecision(True, f"RFQ progress '{rfq_progress}' allows Sales Funnel creation")
        allowed = ' or '.join(f"'{p}'" for p in self.allowed_progress)
        exempt_names = ', '.join(self.exempt_roles) or 'none configured'
        return GateDecision(
            False,
            f"You cannot create a Sales Funnel until the RFQ progress is {allowed} "
            f"(current: '{rfq_progress}'); no exempt role held (exempt: {exempt_names})",
        )

    def authorize_creation(self, roles: Sequence[str], rfq_progress: Optional[str]) -> Decision:
        """Baseline permission, then the gate. Raises Unauthorized or WorkflowGateDenied."""
        baseline = self.engine.check_any(roles, BASELINE_ACTIONS, RESOURCE)
        gate = self.can_create_sales_funnel(roles, rfq_progress)
        if not gate.allowed:
            raise WorkflowGateDenied(gate.reason)
        return baseline


__all__ = ['WorkflowGate', 'GateDecision']
