"""Tests for purchase request submission, numbering, edits and resubmission."""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from prflow.core.errors import ConfigurationError, InvalidStateError, UnauthorizedActionError
from prflow.models import AuditLog, EscalationLog, PurchaseRequest
from prflow.schemas.purchase_request import LineItemIn, PurchaseRequestUpdate
from prflow.services import approval as approval_svc
from prflow.services import escalation as escalation_svc
from prflow.services import escalation_matrix as escalation_matrix_svc
from prflow.services import purchase_request as purchase_request_svc

from tests.conftest import pr_payload


# ─── Numbering ────────────────────────────────────────────────────────────────

def test_first_number_for_entity_and_year(db, org):
    now = datetime(2026, 3, 1, tzinfo=timezone.utc)
    assert purchase_request_svc.generate_requisition_number(db, "ACME", now) == "ACME-26-000001"


def test_numbers_increment_per_entity(db, org, submit):
    first = submit()
    second = submit()
    assert first.pr_number == "ACME-26-000001"
    assert second.pr_number == "ACME-26-000002"

    other = submit(entity="GLOBEX")
    assert other.pr_number == "GLOBEX-26-000001"


def test_sequence_restarts_each_year(db, org, submit):
    submit()
    next_year = datetime(2027, 1, 2, tzinfo=timezone.utc)
    assert purchase_request_svc.generate_requisition_number(db, "ACME", next_year) == "ACME-27-000001"


def test_wildcard_characters_in_entity_are_literal(db, org, submit):
    for _ in range(3):
        submit(entity="AXB")
    now = datetime(2026, 10, 19, tzinfo=timezone.utc)
    assert purchase_request_svc.generate_requisition_number(db, "A_B", now) == "A_B-26-000001"
    assert purchase_request_svc.generate_requisition_number(db, "A%", now) == "A%-26-000001"


# ─── Submission ───────────────────────────────────────────────────────────────

def test_submission_starts_at_level_one(db, org, submit):
    pr = submit()
    assert pr.status == "pending"
    assert pr.current_approval_level == 1
    assert pr.current_approver_emp_code == "A1"
    assert [item.line_number for item in pr.line_items] == [1, 2]
    assert pr.total_estimated_cost == Decimal("2850.00")


def test_submission_without_matrix_is_rejected(db, org, submit):
    with pytest.raises(ConfigurationError):
        purchase_request_svc.create_purchase_request(db, org["X1"], pr_payload())


def test_submission_materializes_escalation_matrix(db, org, submit):
    pr = submit()
    snapshot = escalation_matrix_svc.get_escalation_matrix(db, pr.pr_number)
    assert snapshot is not None
    assert snapshot.manager_1_code == "M1"
    assert snapshot.manager_2_code == "M2"


# ─── Edits ────────────────────────────────────────────────────────────────────

def test_requester_can_edit_at_level_one(db, org, submit):
    pr = submit()
    updated = purchase_request_svc.update_purchase_request(
        db, pr.pr_number, "R1", PurchaseRequestUpdate(title="Laptops (revised)")
    )
    assert updated.title == "Laptops (revised)"
    assert updated.status == "pending"


def test_only_requester_can_edit(db, org, submit):
    pr = submit()
    with pytest.raises(UnauthorizedActionError):
        purchase_request_svc.update_purchase_request(
            db, pr.pr_number, "A1", PurchaseRequestUpdate(title="Hijack")
        )


def test_edit_rejected_once_review_moved_on(db, org, submit, clock):
    pr = submit()
    approval_svc.process_approval_action(db, pr.pr_number, "A1", "approve", now=clock.advance(hours=1))
    with pytest.raises(InvalidStateError):
        purchase_request_svc.update_purchase_request(
            db, pr.pr_number, "R1", PurchaseRequestUpdate(title="Too late")
        )


def test_rejected_request_is_immutable(db, org, submit, clock):
    pr = submit()
    approval_svc.process_approval_action(db, pr.pr_number, "A1", "reject", now=clock.advance(hours=1))
    with pytest.raises(InvalidStateError):
        purchase_request_svc.update_purchase_request(
            db, pr.pr_number, "R1", PurchaseRequestUpdate(title="Retry")
        )


# ─── Resubmission ─────────────────────────────────────────────────────────────

def test_resubmission_resets_level_and_clears_escalation_logs(db, org, submit, clock, policy):
    pr = submit()
    clock.advance(hours=13)
    stats = escalation_svc.run_escalation_scan(db, now=clock(), policy=policy)
    assert stats["escalated"] == 1

    approval_svc.process_approval_action(
        db, pr.pr_number, "M1", "return", comment="Add vendor quotes", now=clock.advance(minutes=5)
    )

    resubmitted = purchase_request_svc.update_purchase_request(
        db,
        pr.pr_number,
        "R1",
        PurchaseRequestUpdate(
            line_items=[
                LineItemIn(
                    product_name="Laptop",
                    required_quantity=Decimal("3"),
                    unit_of_measure="EA",
                    vendor_account_number="V-100",
                    estimated_cost=Decimal("2300.00"),
                )
            ],
            comment="Quotes attached",
        ),
        now=clock.advance(hours=1),
    )

    assert resubmitted.status == "pending"
    assert resubmitted.current_approval_level == 1
    assert resubmitted.current_approver_emp_code == "A1"
    assert resubmitted.total_estimated_cost == Decimal("2300.00")
    assert len(resubmitted.line_items) == 1

    logs = db.execute(select(EscalationLog).where(EscalationLog.pr_number == pr.pr_number)).scalars().all()
    assert logs == []

    last = db.execute(
        select(AuditLog).where(AuditLog.pr_number == pr.pr_number).order_by(AuditLog.acted_at.desc())
    ).scalars().first()
    assert last.action == "resubmitted"
    assert last.approval_level == 0
    assert last.comment == "Quotes attached"


def test_listing_awaiting_action_includes_escalated_requests(db, org, submit, clock, policy):
    pr = submit()
    assert [p.pr_number for p in purchase_request_svc.list_awaiting_action(db, "A1")] == [pr.pr_number]
    assert purchase_request_svc.list_awaiting_action(db, "M1") == []

    escalation_svc.run_escalation_scan(db, now=clock.advance(hours=13), policy=policy)

    assert [p.pr_number for p in purchase_request_svc.list_awaiting_action(db, "M1")] == [pr.pr_number]
    assert [p.pr_number for p in purchase_request_svc.list_awaiting_action(db, "A1")] == [pr.pr_number]
    mine = purchase_request_svc.list_for_requester(db, "R1", status="pending")
    assert [p.pr_number for p in mine] == [pr.pr_number]
    assert db.get(PurchaseRequest, pr.id).current_approver_emp_code is None
