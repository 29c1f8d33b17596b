"""Сверка кассы без БД: итоги по кассирам, итоги периода, net_cash, ошибки чтения."""
import asyncio
from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from backoffice.core.errors import RetrievalError, ValidationError
from backoffice.models import CashBalance, CashWithdrawal
from backoffice.schemas.finance import SalesSummaryResponse
from backoffice.services.directory import Directory
from backoffice.services.reconciliation import Reconciler, build_reconciliation
from backoffice.services.reconciliation_cache import ReconciliationCache

DAY = date(2024, 5, 20)
FIELDS = ("opening", "cash_total", "card_total", "closing")


def balance(operator_id, day, opening, cash, card, closing):
    return CashBalance(
        operator_id=operator_id,
        date=day,
        opening=Decimal(opening),
        cash_total=Decimal(cash),
        card_total=Decimal(card),
        closing=Decimal(closing),
    )


def withdrawal(id_, amount, created_at, admin_id=1, note=None):
    return CashWithdrawal(id=id_, admin_id=admin_id, amount=Decimal(amount), note=note, created_at=created_at)


def sales(cash, card="0", count=1):
    return SalesSummaryResponse(
        cash_total=Decimal(cash),
        card_total=Decimal(card),
        total_sales=Decimal(cash) + Decimal(card),
        invoice_count=count,
    )


ENTRIES = [
    balance(1, DAY, "100.10", "250.20", "80.00", "430.30"),
    balance(2, DAY, "50.00", "0.10", "0.20", "50.30"),
    balance(1, date(2024, 5, 21), "430.30", "0.05", "19.99", "450.00"),
    balance(3, DAY, "0.01", "0.01", "0.01", "0.02"),
]


def test_operator_totals_sum_to_period_totals():
    result = build_reconciliation(DAY, date(2024, 5, 21), ENTRIES, [], sales("0"), Directory())
    for f in FIELDS:
        assert sum((getattr(t, f) for t in result.operator_totals), Decimal("0")) == getattr(result.period_totals, f)
    op1 = next(t for t in result.operator_totals if t.operator_id == 1)
    assert op1.opening == Decimal("530.40")
    assert op1.cash_total == Decimal("250.25")
    assert op1.closing == Decimal("880.30")
    assert result.period_totals.card_total == Decimal("100.20")


def test_discrepancy_is_reported_not_corrected():
    result = build_reconciliation(DAY, DAY, ENTRIES[3:], [], sales("0"), Directory())
    op3 = result.operator_totals[0]
    assert op3.closing == Decimal("0.02")
    assert op3.discrepancy == Decimal("-0.01")


def test_withdrawal_total_and_net_cash():
    ws = [
        withdrawal(2, "0.20", datetime(2024, 5, 20, 15, 0)),
        withdrawal(1, "0.10", datetime(2024, 5, 20, 9, 0)),
    ]
    result = build_reconciliation(DAY, DAY, ENTRIES, ws, sales("1000.30", "99.99"), Directory())
    assert result.period_totals.withdrawal_total == Decimal("0.30")
    assert result.period_totals.net_cash == Decimal("1000.00")
    assert [w.id for w in result.withdrawals] == [2, 1]


def test_no_balances_still_reports_withdrawals():
    ws = [withdrawal(7, "150.00", datetime(2024, 5, 20, 12, 0))]
    result = build_reconciliation(DAY, DAY, [], ws, sales("0"), Directory())
    assert result.operator_totals == []
    assert result.period_totals.opening == Decimal("0")
    assert result.period_totals.closing == Decimal("0")
    assert result.period_totals.withdrawal_total == Decimal("150.00")
    assert result.period_totals.net_cash == Decimal("-150.00")


def test_operator_names_from_directory_with_fallback():
    directory = Directory({1: "Анна", 2: "Борис"})
    result = build_reconciliation(DAY, DAY, ENTRIES, [withdrawal(1, "5", datetime(2024, 5, 20), admin_id=99)],
                                  sales("0"), directory)
    names = {t.operator_id: t.operator_name for t in result.operator_totals}
    assert names == {1: "Анна", 2: "Борис", 3: "3"}
    assert result.withdrawals[0].admin_name == "99"


def test_money_serialized_as_strings():
    result = build_reconciliation(DAY, DAY, ENTRIES[:1], [], sales("10"), Directory())
    data = result.model_dump(mode="json")
    assert data["period_totals"]["opening"] == "100.10"
    assert data["period_totals"]["net_cash"] == "10.00"
    assert data["start_date"] == "2024-05-20"


def test_directory_never_fails():
    directory = Directory({1: "Анна"})
    assert directory.resolve_name(1) == "Анна"
    assert directory.resolve_name(404) == "404"
    assert directory.resolve_name("abc") == "abc"
    assert directory.resolve_name(["not", "hashable"]) == "['not', 'hashable']"


class _BrokenSession:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))


def test_read_failure_fails_whole_reconcile():
    """Хранилище недоступно — ошибка, а не пустая сводка."""
    cache = ReconciliationCache(ttl_seconds=60)
    reconciler = Reconciler(_BrokenSession, cache)
    with pytest.raises(RetrievalError):
        asyncio.run(reconciler.reconcile("2024-05-20", "2024-05-20"))
    assert len(cache) == 0


def test_reconcile_validates_range_before_reading():
    reconciler = Reconciler(_BrokenSession, ReconciliationCache(ttl_seconds=60))
    with pytest.raises(ValidationError):
        asyncio.run(reconciler.reconcile("2024-05-21", "2024-05-20"))


class _HangingSessions:
    """Чтение закрытий касс падает сразу, остальные чтения висят до отмены."""

    def __init__(self):
        self.cancelled = 0

    def __call__(self):
        return self

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, statement, *args, **kwargs):
        if "cash_balances" in str(statement):
            raise OperationalError("SELECT", {}, Exception("connection refused"))
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            self.cancelled += 1
            raise


def test_failed_read_cancels_other_reads():
    sessions = _HangingSessions()
    reconciler = Reconciler(sessions, ReconciliationCache(ttl_seconds=60))

    async def scenario():
        with pytest.raises(RetrievalError):
            await reconciler.reconcile("2024-05-20", "2024-05-20")
        # withdrawals, sales, directory
        return sessions.cancelled

    assert asyncio.run(scenario()) == 3
