# Overview: Repair work order operations; numbering and completion stamping.

from __future__ import annotations

import logging

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, SewingMachine, WorkOrder
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, enforce_rules_work_order, validate_payload
from .concurrency import begin_write, run_with_retry
from .document_service import DOCUMENT_WORK_ORDER, next_document_number
from .pagination import paginate

logger = logging.getLogger(__name__)

WORK_ORDER_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id", "machine_id", "problem_description", "diagnosis",
        "repair_notes", "status", "priority", "estimated_cost",
        "actual_cost", "labor_hours", "due_date",
    },
    required_on_create={"customer_id", "problem_description"},
)


def list_work_orders(
    *,
    status: str | None = None,
    customer_id: int | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    query = db.session.query(WorkOrder)
    if status:
        query = query.filter(WorkOrder.status == status)
    if customer_id is not None:
        query = query.filter(WorkOrder.customer_id == customer_id)
    query = query.order_by(WorkOrder.created_at.desc(), WorkOrder.id.desc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda w: w.to_dict())


def get_work_order(work_order_id: int) -> WorkOrder:
    work_order = db.session.get(WorkOrder, work_order_id)
    if work_order is None:
        raise NotFoundError("Work order not found")
    return work_order


def _check_references(customer_id: int, machine_id: int | None) -> None:
    if db.session.get(Customer, customer_id) is None:
        raise NotFoundError("Customer not found")
    if machine_id is None:
        return
    machine = db.session.get(SewingMachine, machine_id)
    if machine is None:
        raise NotFoundError("Machine not found")
    if machine.customer_id != customer_id:
        raise ValidationError("Machine does not belong to this customer")


def _stamp_completion(work_order: WorkOrder, now) -> None:
    if work_order.status == "completed":
        if work_order.completed_at is None:
            work_order.completed_at = now
    else:
        work_order.completed_at = None


def create_work_order(payload: dict) -> WorkOrder:
    patch = validate_payload(model=WorkOrder, payload=payload, policy=WORK_ORDER_POLICY, partial=False)
    enforce_rules_work_order(patch)

    def _op():
        begin_write(db.session)
        now = utcnow()
        _check_references(patch["customer_id"], patch.get("machine_id"))

        work_order = WorkOrder(
            order_number=next_document_number(db.session, document_type=DOCUMENT_WORK_ORDER, year=now.year),
            **patch,
        )
        if work_order.status is None:
            work_order.status = "pending"
        _stamp_completion(work_order, now)
        db.session.add(work_order)
        db.session.commit()
        return work_order

    work_order = run_with_retry(db.session, _op)
    logger.info("Work order created number=%s customer=%s", work_order.order_number, work_order.customer_id)
    return work_order


def update_work_order(work_order_id: int, payload: dict) -> WorkOrder:
    patch = validate_payload(model=WorkOrder, payload=payload, policy=WORK_ORDER_POLICY, partial=True)
    enforce_rules_work_order(patch)

    work_order = get_work_order(work_order_id)
    customer_id = patch.get("customer_id", work_order.customer_id)
    machine_id = patch.get("machine_id", work_order.machine_id)
    if "customer_id" in patch or "machine_id" in patch:
        _check_references(customer_id, machine_id)

    previous_status = work_order.status
    for key, value in patch.items():
        setattr(work_order, key, value)

    now = utcnow()
    _stamp_completion(work_order, now)
    work_order.updated_at = now
    db.session.commit()

    if work_order.status != previous_status:
        logger.info("Work order %s status %s -> %s", work_order.order_number, previous_status, work_order.status)
    return work_order
