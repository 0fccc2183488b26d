# Overview: Customer and machine registry operations.

from __future__ import annotations

import logging

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError
from ..extensions import db
from ..models import Customer, Invoice, SewingMachine, WorkOrder
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, validate_payload
from .pagination import paginate

logger = logging.getLogger(__name__)

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={
        "first_name", "last_name", "email", "phone",
        "address", "city", "state", "zip_code", "notes",
    },
    required_on_create={"first_name", "last_name", "phone"},
)

MACHINE_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id", "brand", "model", "serial_number",
        "purchase_date", "warranty_expiration", "notes",
    },
    required_on_create={"customer_id", "brand", "model"},
)


def list_customers(*, search: str | None = None, page: int | None = None, per_page: int | None = None) -> dict:
    query = db.session.query(Customer)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(
            Customer.first_name.ilike(like),
            Customer.last_name.ilike(like),
            Customer.phone.ilike(like),
            Customer.email.ilike(like),
        ))
    query = query.order_by(Customer.created_at.desc(), Customer.id.desc())
    return paginate(query, page=page, per_page=per_page, serialize=lambda c: c.to_dict())


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFoundError("Customer not found")
    return customer


def _ensure_phone_free(phone: str, *, exclude_id: int | None = None) -> None:
    query = db.session.query(Customer.id).filter(Customer.phone == phone)
    if exclude_id is not None:
        query = query.filter(Customer.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(
            "A customer with this phone number already exists",
            errors=[{"field": "phone", "message": "duplicate"}],
        )


def create_customer(payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    _ensure_phone_free(patch["phone"])

    customer = Customer(**patch)
    db.session.add(customer)
    db.session.commit()
    logger.info("Customer created id=%s phone=%s", customer.id, customer.phone)
    return customer


def update_customer(customer_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    customer = get_customer(customer_id)

    if "phone" in patch and patch["phone"] != customer.phone:
        _ensure_phone_free(patch["phone"], exclude_id=customer.id)

    for key, value in patch.items():
        setattr(customer, key, value)
    customer.updated_at = utcnow()
    db.session.commit()
    return customer


def delete_customer(customer_id: int) -> None:
    """Hard delete, refused while invoices, work orders or machines reference the customer."""
    customer = get_customer(customer_id)

    references = {
        "invoices": db.session.query(Invoice.id).filter_by(customer_id=customer.id).count(),
        "work orders": db.session.query(WorkOrder.id).filter_by(customer_id=customer.id).count(),
        "machines": db.session.query(SewingMachine.id).filter_by(customer_id=customer.id).count(),
    }
    blocking = {name: count for name, count in references.items() if count}
    if blocking:
        detail = ", ".join(f"{count} {name}" for name, count in blocking.items())
        raise ConflictError(
            f"Cannot delete customer with existing records ({detail})",
            errors=[{"reference": name, "count": count} for name, count in blocking.items()],
        )

    db.session.delete(customer)
    db.session.commit()
    logger.info("Customer %s deleted", customer_id)


def list_machines(*, customer_id: int | None = None) -> list[SewingMachine]:
    query = db.session.query(SewingMachine)
    if customer_id is not None:
        query = query.filter(SewingMachine.customer_id == customer_id)
    return query.order_by(SewingMachine.id.desc()).all()


def create_machine(payload: dict) -> SewingMachine:
    patch = validate_payload(model=SewingMachine, payload=payload, policy=MACHINE_POLICY, partial=False)
    get_customer(patch["customer_id"])

    machine = SewingMachine(**patch)
    db.session.add(machine)
    db.session.commit()
    return machine
