# Overview: Read-only rollups for the shop dashboard.

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..models import Customer, Invoice, WorkOrder
from ..models.invoices import PAYMENT_STATUS_PAID
from ..models.work_orders import ACTIVE_WORK_ORDER_STATUSES
from ..money import money_str, quantize_money
from ..time_utils import days_from, start_of_day, to_utc_z, utcnow
from .inventory_ledger import InventoryLedger


class DashboardService:
    """
    Metrics over committed rows. Day boundaries are UTC midnight.

    Nothing is cached; each call reads current state.
    """

    def __init__(
        self,
        session: Session,
        *,
        new_customer_window_days: int = 7,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session = session
        self.new_customer_window_days = new_customer_window_days
        self.clock = clock

    def _today(self) -> tuple[datetime, datetime]:
        start = start_of_day(self.clock())
        return start, start + timedelta(days=1)

    def todays_sales(self) -> Decimal:
        start, end = self._today()
        total = (
            self.session.query(func.coalesce(func.sum(Invoice.total), 0))
            .filter(
                Invoice.payment_status == PAYMENT_STATUS_PAID,
                Invoice.payment_date >= start,
                Invoice.payment_date < end,
            )
            .scalar()
        )
        return quantize_money(Decimal(str(total or 0)))

    def active_repairs(self) -> int:
        return (
            self.session.query(func.count(WorkOrder.id))
            .filter(WorkOrder.status.in_(ACTIVE_WORK_ORDER_STATUSES))
            .scalar()
        )

    def due_today(self) -> int:
        start, end = self._today()
        return (
            self.session.query(func.count(WorkOrder.id))
            .filter(
                WorkOrder.status.in_(ACTIVE_WORK_ORDER_STATUSES),
                WorkOrder.due_date >= start,
                WorkOrder.due_date < end,
            )
            .scalar()
        )

    def new_customers(self) -> int:
        since = days_from(self.clock(), -self.new_customer_window_days)
        return (
            self.session.query(func.count(Customer.id))
            .filter(Customer.created_at >= since)
            .scalar()
        )

    def low_stock_items(self) -> int:
        return InventoryLedger(self.session).low_stock_count()

    def metrics(self) -> dict:
        return {
            "todays_sales": money_str(self.todays_sales()),
            "active_repairs": self.active_repairs(),
            "due_today": self.due_today(),
            "new_customers": self.new_customers(),
            "low_stock_items": self.low_stock_items(),
        }

    def recent_activity(self, *, work_orders: int = 5, customers: int = 6) -> dict:
        recent_orders = (
            self.session.query(WorkOrder)
            .options(joinedload(WorkOrder.customer), joinedload(WorkOrder.machine))
            .order_by(WorkOrder.created_at.desc(), WorkOrder.id.desc())
            .limit(work_orders)
            .all()
        )
        recent_customers = (
            self.session.query(Customer)
            .order_by(Customer.created_at.desc(), Customer.id.desc())
            .limit(customers)
            .all()
        )

        return {
            "recent_work_orders": [
                {
                    "id": wo.id,
                    "order_number": wo.order_number,
                    "status": wo.status,
                    "due_date": to_utc_z(wo.due_date),
                    "customer": {
                        "first_name": wo.customer.first_name,
                        "last_name": wo.customer.last_name,
                        "phone": wo.customer.phone,
                    } if wo.customer else None,
                    "machine": {
                        "brand": wo.machine.brand,
                        "model": wo.machine.model,
                    } if wo.machine else None,
                }
                for wo in recent_orders
            ],
            "recent_customers": [c.to_dict() for c in recent_customers],
        }
