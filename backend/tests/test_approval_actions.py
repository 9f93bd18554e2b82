"""Tests for approval actions: routing, parallel level 3, races and escalation.

Scenarios run against in-memory SQLite with a clock moved forward between
actions so audit ordering is deterministic.
"""
import pytest
from sqlalchemy import select, update

from prflow.core.errors import (
    ConfigurationError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedActionError,
    WorkflowValidationError,
)
from prflow.models import ApprovalMatrix, AuditLog, PurchaseRequest
from prflow.schemas.purchase_request import PurchaseRequestUpdate
from prflow.services import approval as approval_svc
from prflow.services import escalation as escalation_svc
from prflow.services import purchase_request as purchase_request_svc

from tests.conftest import make_matrix, make_user


def _act(db, clock, pr_number, actor, action, **kwargs):
    return approval_svc.process_approval_action(
        db, pr_number, actor, action, now=clock.advance(minutes=30), **kwargs
    )


def _reload(db, pr):
    db.expire_all()
    return db.get(PurchaseRequest, pr.id)


def _assert_invariant(pr):
    if pr.status == "pending":
        assert pr.current_approval_level in (1, 2, 3)
    else:
        assert pr.current_approval_level is None
        assert pr.current_approver_emp_code is None


def _add_requester(db, org, emp_code, **matrix_overrides):
    org[emp_code] = make_user(db, emp_code, f"Requester {emp_code}", role="requester")
    make_matrix(db, emp_code, **matrix_overrides)
    db.commit()


# ─── Happy paths ──────────────────────────────────────────────────────────────

def test_full_chain_with_parallel_final_level(db, org, submit, clock):
    pr = submit()

    outcome = _act(db, clock, pr.pr_number, "A1", "approve")
    assert (outcome.status, outcome.current_approval_level, outcome.current_approver_emp_code) == ("pending", 2, "A2")

    outcome = _act(db, clock, pr.pr_number, "A2", "approve")
    assert outcome.current_approval_level == 3
    assert outcome.current_approver_emp_code is None
    assert set(outcome.next_approvers) == {"A3A", "A3B"}
    assert outcome.is_final is False

    outcome = _act(db, clock, pr.pr_number, "A3B", "approve", comment="Budget ok")
    assert outcome.status == "approved"
    assert outcome.is_final is True
    assert outcome.message == "Purchase request approved."

    final = _reload(db, pr)
    _assert_invariant(final)
    assert final.status == "approved"

    rows = db.execute(
        select(AuditLog.approver_emp_code, AuditLog.approval_level, AuditLog.action)
        .where(AuditLog.pr_number == pr.pr_number)
        .order_by(AuditLog.acted_at)
    ).all()
    assert [tuple(row) for row in rows] == [
        ("A1", 1, "approved"),
        ("A2", 2, "approved"),
        ("A3B", 3, "approved"),
    ]


def test_second_parallel_approver_is_turned_away(db, org, submit, clock):
    pr = submit()
    _act(db, clock, pr.pr_number, "A1", "approve")
    _act(db, clock, pr.pr_number, "A2", "approve")
    _act(db, clock, pr.pr_number, "A3A", "approve")

    with pytest.raises(InvalidStateError, match="already been acted upon"):
        _act(db, clock, pr.pr_number, "A3B", "approve")

    assert _reload(db, pr).status == "approved"


def test_single_final_approver_is_stored_on_request(db, org, submit, clock):
    _add_requester(db, org, "R3", approver_3b=None)
    pr = submit(requester="R3")

    _act(db, clock, pr.pr_number, "A1", "approve")
    outcome = _act(db, clock, pr.pr_number, "A2", "approve")
    assert outcome.current_approval_level == 3
    assert outcome.current_approver_emp_code == "A3A"
    assert outcome.is_final is True

    with pytest.raises(UnauthorizedActionError):
        _act(db, clock, pr.pr_number, "A3B", "approve")

    assert _act(db, clock, pr.pr_number, "A3A", "approve").status == "approved"


def test_two_level_chain_approves_at_level_two(db, org, submit, clock):
    _add_requester(db, org, "R4", approver_3a=None, approver_3b=None)
    pr = submit(requester="R4")

    _act(db, clock, pr.pr_number, "A1", "approve")
    outcome = _act(db, clock, pr.pr_number, "A2", "approve")
    assert outcome.status == "approved"
    _assert_invariant(_reload(db, pr))


# ─── Reject and return ────────────────────────────────────────────────────────

def test_reject_at_level_two_is_terminal(db, org, submit, clock):
    pr = submit()
    _act(db, clock, pr.pr_number, "A1", "approve")
    outcome = _act(db, clock, pr.pr_number, "A2", "reject", comment="Not in budget")

    assert outcome.status == "rejected"
    assert outcome.is_final is False
    final = _reload(db, pr)
    _assert_invariant(final)

    with pytest.raises(InvalidStateError):
        _act(db, clock, pr.pr_number, "A2", "approve")


def test_return_then_resubmit_restarts_chain(db, org, submit, clock):
    pr = submit()
    _act(db, clock, pr.pr_number, "A1", "approve")
    _act(db, clock, pr.pr_number, "A2", "approve")
    _act(db, clock, pr.pr_number, "A3A", "return", comment="Need quotes")
    assert _reload(db, pr).status == "returned"

    purchase_request_svc.update_purchase_request(
        db, pr.pr_number, "R1", PurchaseRequestUpdate(comment="Quotes added"), now=clock.advance(hours=1)
    )
    _act(db, clock, pr.pr_number, "A1", "approve")
    outcome = _act(db, clock, pr.pr_number, "A2", "approve")

    # new cycle: both final approvers may act again
    assert outcome.current_approval_level == 3
    assert outcome.current_approver_emp_code is None


# ─── Rejections of the action itself ─────────────────────────────────────────

def test_unknown_action_is_a_validation_error(db, org, submit, clock):
    pr = submit()
    with pytest.raises(WorkflowValidationError):
        _act(db, clock, pr.pr_number, "A1", "escalate")


def test_unknown_request_is_not_found(db, org, clock):
    with pytest.raises(NotFoundError):
        _act(db, clock, "ACME-26-424242", "A1", "approve")


def test_wrong_approver_is_unauthorized(db, org, submit, clock):
    pr = submit()
    with pytest.raises(UnauthorizedActionError):
        _act(db, clock, pr.pr_number, "A2", "approve")
    with pytest.raises(UnauthorizedActionError):
        _act(db, clock, pr.pr_number, "M1", "approve")


def test_vanished_matrix_is_a_configuration_error(db, org, submit, clock):
    pr = submit()
    db.execute(
        update(ApprovalMatrix).where(ApprovalMatrix.emp_code == "R1").values(approver_1_emp_code=None)
    )
    db.commit()
    with pytest.raises(ConfigurationError):
        _act(db, clock, pr.pr_number, "A1", "approve")


# ─── Races ────────────────────────────────────────────────────────────────────

def test_losing_side_of_a_race_writes_nothing(db, org, submit, clock, monkeypatch):
    pr = submit()
    _act(db, clock, pr.pr_number, "A1", "approve")
    _act(db, clock, pr.pr_number, "A2", "approve")

    real_guarded_update = purchase_request_svc.guarded_update

    def racing_guarded_update(session, pr_number, **kwargs):
        # A3B commits between our read and our write
        session.execute(
            update(PurchaseRequest)
            .where(PurchaseRequest.pr_number == pr_number)
            .values(status="approved", current_approval_level=None, current_approver_emp_code=None)
        )
        return real_guarded_update(session, pr_number, **kwargs)

    monkeypatch.setattr(purchase_request_svc, "guarded_update", racing_guarded_update)

    with pytest.raises(InvalidStateError, match="already been acted upon"):
        _act(db, clock, pr.pr_number, "A3A", "approve")

    level_3_entries = db.execute(
        select(AuditLog).where(AuditLog.pr_number == pr.pr_number, AuditLog.approval_level == 3)
    ).scalars().all()
    assert level_3_entries == []


# ─── Escalation widens eligibility ───────────────────────────────────────────

def test_manager_and_approver_both_eligible_after_escalation(db, org, submit, clock, policy):
    pr = submit()
    escalation_svc.run_escalation_scan(db, now=clock.advance(hours=13), policy=policy)

    outcome = _act(db, clock, pr.pr_number, "M1", "approve")
    assert outcome.current_approval_level == 2
    assert outcome.current_approver_emp_code == "A2"

    # approver_1 was eligible too, but the manager acted first
    with pytest.raises(UnauthorizedActionError):
        _act(db, clock, pr.pr_number, "A1", "approve")


def test_outsider_cannot_act_on_escalated_request(db, org, submit, clock, policy):
    pr = submit()
    escalation_svc.run_escalation_scan(db, now=clock.advance(hours=13), policy=policy)
    with pytest.raises(UnauthorizedActionError):
        _act(db, clock, pr.pr_number, "X1", "approve")
