import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

from cyclemart.services.payment_state import (
    apply_payment_state,
    derive_payment_status,
    remaining_amount,
)

NOW = datetime(2026, 6, 15, 12, 0, 0)
FUTURE = NOW + timedelta(days=10)
PAST = NOW - timedelta(days=1)


def _invoice(total="1000.00", status="pending", due_date=FUTURE, payment_date=None):
    return SimpleNamespace(
        total=Decimal(total),
        payment_status=status,
        due_date=due_date,
        payment_date=payment_date,
        paid_amount=Decimal("0.00"),
        remaining_amount=Decimal(total),
    )


class DerivePaymentStatusTests(unittest.TestCase):
    def test_status_table(self):
        cases = [
            # paid, total, due, expected
            ("0", "1000", FUTURE, "pending"),
            ("0", "1000", PAST, "overdue"),
            ("0.01", "1000", PAST, "partial"),
            ("999.99", "1000", FUTURE, "partial"),
            ("1000", "1000", PAST, "paid"),
            ("1200", "1000", FUTURE, "paid"),
            ("-5", "1000", FUTURE, "pending"),
        ]
        for paid, total, due, expected in cases:
            with self.subTest(paid=paid, total=total):
                self.assertEqual(
                    derive_payment_status(Decimal(paid), Decimal(total), due, NOW),
                    expected,
                )

    def test_due_now_is_not_yet_overdue(self):
        self.assertEqual(derive_payment_status(Decimal("0"), Decimal("10"), NOW, NOW), "pending")

    def test_aware_due_date_is_compared_in_utc(self):
        due = PAST.replace(tzinfo=timezone.utc)
        self.assertEqual(derive_payment_status(Decimal("0"), Decimal("10"), due, NOW), "overdue")

    def test_remaining_never_negative(self):
        self.assertEqual(remaining_amount(Decimal("1200"), Decimal("1000")), Decimal("0.00"))
        self.assertEqual(remaining_amount(Decimal("400"), Decimal("1000")), Decimal("600.00"))


class ApplyPaymentStateTests(unittest.TestCase):
    def test_partial_then_paid(self):
        invoice = _invoice()

        apply_payment_state(invoice, Decimal("400"), NOW)
        self.assertEqual(invoice.paid_amount, Decimal("400.00"))
        self.assertEqual(invoice.remaining_amount, Decimal("600.00"))
        self.assertEqual(invoice.payment_status, "partial")
        self.assertIsNone(invoice.payment_date)

        apply_payment_state(invoice, Decimal("1000"), NOW)
        self.assertEqual(invoice.remaining_amount, Decimal("0.00"))
        self.assertEqual(invoice.payment_status, "paid")
        self.assertEqual(invoice.payment_date, NOW)

    def test_payment_date_set_once(self):
        earlier = NOW - timedelta(days=3)
        invoice = _invoice(status="paid", payment_date=earlier)

        apply_payment_state(invoice, Decimal("1000"), NOW)
        self.assertEqual(invoice.payment_date, earlier)

    def test_payment_date_cleared_when_no_longer_paid(self):
        invoice = _invoice(status="paid", payment_date=NOW)

        apply_payment_state(invoice, Decimal("100"), NOW)
        self.assertEqual(invoice.payment_status, "partial")
        self.assertIsNone(invoice.payment_date)

    def test_cancelled_is_never_recomputed(self):
        invoice = _invoice(status="cancelled")

        status = apply_payment_state(invoice, Decimal("1000"), NOW)
        self.assertEqual(status, "cancelled")
        self.assertEqual(invoice.paid_amount, Decimal("1000.00"))
        self.assertEqual(invoice.remaining_amount, Decimal("0.00"))


if __name__ == "__main__":
    unittest.main()
