"""
Сверка кассы за период.

Закрытия касс, изъятия и продажи по чекам читаются параллельно, каждое в своей
сессии. Ошибка любого чтения — ошибка всей сверки: частичных сводок не бывает.

    net_cash = продажи наличными по чекам − сумма изъятий
"""
import asyncio
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.core.logging_config import get_logger
from backoffice.core.money import ZERO, money_sum
from backoffice.models import CashBalance, CashWithdrawal
from backoffice.schemas.finance import (
    BalanceEntryResponse,
    CashInShopResponse,
    OperatorTotals,
    PeriodTotals,
    ReconciliationResponse,
    SalesSummaryResponse,
    WithdrawalResponse,
)
from backoffice.services.balance_ledger import discrepancy, list_balances
from backoffice.services.directory import Directory, load_directory
from backoffice.services.periods import DATE_FORMAT, parse_date_range
from backoffice.services.reconciliation_cache import ReconciliationCache
from backoffice.services.sales_summary import summarize
from backoffice.services.withdrawal_ledger import WithdrawalLedger

logger = get_logger(__name__)

BALANCE_FIELDS = ("opening", "cash_total", "card_total", "closing")


def withdrawal_to_response(w: CashWithdrawal, directory: Directory) -> WithdrawalResponse:
    return WithdrawalResponse(
        id=w.id,
        admin_id=w.admin_id,
        admin_name=directory.resolve_name(w.admin_id),
        amount=w.amount,
        note=w.note,
        created_at=w.created_at.isoformat(),
    )


def balance_to_response(b: CashBalance, directory: Directory) -> BalanceEntryResponse:
    return BalanceEntryResponse(
        id=b.id,
        operator_id=b.operator_id,
        operator_name=directory.resolve_name(b.operator_id),
        date=b.date.strftime(DATE_FORMAT),
        opening=b.opening,
        cash_total=b.cash_total,
        card_total=b.card_total,
        closing=b.closing,
        discrepancy=discrepancy(b),
    )


def build_reconciliation(
    start: date,
    end: date,
    entries: Iterable[CashBalance],
    withdrawals: List[CashWithdrawal],
    sales: SalesSummaryResponse,
    directory: Directory,
) -> ReconciliationResponse:
    """Чистый расчёт сводки, без обращений к БД."""
    groups: Dict[int, Dict[str, Decimal]] = {}
    for entry in entries:
        acc = groups.setdefault(entry.operator_id, {f: ZERO for f in BALANCE_FIELDS})
        for f in BALANCE_FIELDS:
            acc[f] += getattr(entry, f)

    operator_totals = [
        OperatorTotals(
            operator_id=operator_id,
            operator_name=directory.resolve_name(operator_id),
            discrepancy=acc["closing"] - (acc["opening"] + acc["cash_total"] + acc["card_total"]),
            **acc,
        )
        for operator_id, acc in sorted(groups.items())
    ]
    # Итоги периода — сумма итогов по кассирам, поэтому совпадают с ними точно
    period = {f: money_sum(getattr(t, f) for t in operator_totals) for f in BALANCE_FIELDS}
    withdrawal_total = money_sum(w.amount for w in withdrawals)

    return ReconciliationResponse(
        start_date=start.strftime(DATE_FORMAT),
        end_date=end.strftime(DATE_FORMAT),
        operator_totals=operator_totals,
        period_totals=PeriodTotals(
            withdrawal_total=withdrawal_total,
            net_cash=sales.cash_total - withdrawal_total,
            **period,
        ),
        withdrawals=[withdrawal_to_response(w, directory) for w in withdrawals],
        sales=sales,
    )


async def _gather_or_cancel(*coros):
    """Как asyncio.gather, но при первой ошибке отменяет остальные чтения и дожидается их."""
    tasks = [asyncio.ensure_future(c) for c in coros]
    try:
        return await asyncio.gather(*tasks)
    except Exception:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise


class Reconciler:
    def __init__(self, session_factory: async_sessionmaker, cache: ReconciliationCache):
        self.session_factory = session_factory
        self.cache = cache

    async def reconcile(self, start_date: str, end_date: str) -> ReconciliationResponse:
        start, end = parse_date_range(start_date, end_date)
        cached = self.cache.get(start, end)
        if cached is not None:
            return cached
        generation = self.cache.generation()
        entries, withdrawals, sales, directory = await _gather_or_cancel(
            self._balances(start, end),
            self._withdrawals(start, end),
            self._sales(start, end),
            self.directory(),
        )
        result = build_reconciliation(start, end, entries, withdrawals, sales, directory)
        self.cache.put(start, end, result, generation)
        return result

    async def cash_in_shop(self) -> CashInShopResponse:
        """Наличные в магазине за всё время. Не кэшируется."""
        sales, withdrawn = await _gather_or_cancel(self._sales(None, None), self._withdrawal_total())
        return CashInShopResponse(
            total_cash_sales=sales.cash_total,
            total_withdrawals=withdrawn,
            cash_in_shop=sales.cash_total - withdrawn,
        )

    async def directory(self) -> Directory:
        """Справочник имён. Если не загрузился — показываем id вместо имён."""
        try:
            async with self.session_factory() as db:
                return await load_directory(db)
        except SQLAlchemyError as e:
            logger.warning("Справочник сотрудников недоступен: %s", e)
            return Directory()

    async def _balances(self, start: date, end: date) -> List[CashBalance]:
        async with self.session_factory() as db:
            return await list_balances(db, start, end)

    async def _withdrawals(self, start: date, end: date) -> List[CashWithdrawal]:
        async with self.session_factory() as db:
            return await WithdrawalLedger(db).list_withdrawals(start, end)

    async def _withdrawal_total(self) -> Decimal:
        async with self.session_factory() as db:
            return await WithdrawalLedger(db).total()

    async def _sales(self, start, end) -> SalesSummaryResponse:
        async with self.session_factory() as db:
            return await summarize(db, start, end)


class FinanceContext:
    """Состояние кассового модуля на процесс: кэш сводок и сверка. Создаётся в lifespan."""

    def __init__(self, session_factory: async_sessionmaker, cache_ttl_seconds: float):
        self.session_factory = session_factory
        self.cache: ReconciliationCache[ReconciliationResponse] = ReconciliationCache(cache_ttl_seconds)
        self.reconciler = Reconciler(session_factory, self.cache)

    def ledger(self, db: AsyncSession) -> WithdrawalLedger:
        return WithdrawalLedger(db, self.cache)
