import pytest

from salesflow.constants.permissions import RFQ_PROGRESS
from salesflow.errors import Unauthorized, WorkflowGateDenied
from salesflow.services.authz_engine import AuthorizationEngine
from salesflow.services.workflow_gate import WorkflowGate

SENT_TO_SALESPERSON = 'Sent to Salesperson (100%)'
SENT_TO_CUSTOMER = 'Sent to Customer (Done)'


@pytest.fixture()
def engine():
    return AuthorizationEngine()


def test_allowed_progress_passes_for_non_exempt_actor(engine):
    gate = WorkflowGate(engine, exempt_roles=['admin'])
    for progress in (SENT_TO_SALESPERSON, SENT_TO_CUSTOMER):
        decision = gate.can_create_sales_funnel(['sales-person'], progress)
        assert decision.allowed and decision.exempt_role is None


@pytest.mark.parametrize('progress', [p for p in RFQ_PROGRESS if p not in (SENT_TO_SALESPERSON, SENT_TO_CUSTOMER)] + [None])
def test_earlier_progress_is_refused(engine, progress):
    gate = WorkflowGate(engine, exempt_roles=['admin'])
    decision = gate.can_create_sales_funnel(['sales-person'], progress)
    assert not decision.allowed
    assert SENT_TO_SALESPERSON in decision.reason and SENT_TO_CUSTOMER in decision.reason
    assert f"current: '{progress}'" in decision.reason


def test_exempt_role_passes_regardless_of_progress(engine):
    gate = WorkflowGate(engine, exempt_roles=['admin', 'super-admin'])
    decision = gate.can_create_sales_funnel(['sales-person', 'admin'], 'Waiting for Drawing')
    assert decision.allowed and decision.exempt_role == 'admin'


def test_admin_is_gated_when_not_configured_exempt(engine):
    gate = WorkflowGate(engine, exempt_roles=[])
    decision = gate.can_create_sales_funnel(['admin'], 'Partially Submitted')
    assert not decision.allowed
    assert 'none configured' in decision.reason
    with pytest.raises(WorkflowGateDenied):
        gate.authorize_creation(['admin'], 'Partially Submitted')


def test_super_admin_always_passes_the_gate(engine):
    gate = WorkflowGate(engine, exempt_roles=[])
    assert gate.can_create_sales_funnel(['super-admin'], 'Waiting for Drawing').allowed
    assert gate.authorize_creation(['super-admin'], 'Waiting for Drawing').granted


def test_baseline_permission_is_checked_before_the_gate(engine):
    gate = WorkflowGate(engine, exempt_roles=['admin'])
    # user lacks create on sales-funnel: Unauthorized even though progress is acceptable
    with pytest.raises(Unauthorized):
        gate.authorize_creation(['user'], SENT_TO_CUSTOMER)
    with pytest.raises(Unauthorized):
        gate.authorize_creation(['user'], 'Waiting for Drawing')


def test_authorize_creation_raises_gate_denial_with_reason(engine):
    gate = WorkflowGate(engine, exempt_roles=['admin'])
    with pytest.raises(WorkflowGateDenied) as exc:
        gate.authorize_creation(['sales-person'], 'Waiting for vendor quotation')
    assert exc.value.kind == 'workflow_gate_denied'
    assert 'Waiting for vendor quotation' in exc.value.description
    decision = gate.authorize_creation(['sales-person'], SENT_TO_SALESPERSON)
    assert decision.granted and decision.role == 'sales-person'
