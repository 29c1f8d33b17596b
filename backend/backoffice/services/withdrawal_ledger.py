"""
Журнал изъятий наличных: создание, изменение, удаление, выборка за период.

После каждого изменения запись фиксируется в БД и только затем сбрасываются
кэшированные сводки, чей период содержит дату изъятия. Ответ вызывающему
уходит после сброса — следующий запрос сводки увидит новую сумму.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.errors import NotFoundError, RetrievalError, ValidationError
from backoffice.core.logging_config import get_logger
from backoffice.core.money import CENT, from_db_total, to_money
from backoffice.models import CashWithdrawal
from backoffice.services.periods import day_bounds
from backoffice.services.reconciliation_cache import ReconciliationCache

logger = get_logger(__name__)

# NUMERIC(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")

KEEP_NOTE = object()


def clean_amount(amount) -> Decimal:
    try:
        value = to_money(amount)
    except ValueError as e:
        raise ValidationError(str(e))
    if value <= 0:
        raise ValidationError("Сумма изъятия должна быть больше нуля")
    if value > MAX_AMOUNT:
        raise ValidationError("Сумма изъятия слишком большая")
    if value != value.quantize(CENT):
        raise ValidationError("Сумма изъятия — не больше двух знаков после запятой")
    return value


def clean_note(note: Optional[str]) -> Optional[str]:
    if note is None:
        return None
    note = note.strip()
    return note or None


class WithdrawalLedger:
    def __init__(
        self,
        db: AsyncSession,
        cache: Optional[ReconciliationCache] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.db = db
        self.cache = cache
        self._clock = clock

    async def list_withdrawals(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        admin_id: Optional[int] = None,
    ) -> List[CashWithdrawal]:
        """Изъятия за [start, end] по дате created_at, последние сверху."""
        q = select(CashWithdrawal).order_by(CashWithdrawal.created_at.desc(), CashWithdrawal.id.desc())
        if start is not None and end is not None:
            since, until = day_bounds(start, end)
            q = q.where(CashWithdrawal.created_at >= since, CashWithdrawal.created_at < until)
        if admin_id is not None:
            q = q.where(CashWithdrawal.admin_id == admin_id)
        try:
            return list((await self.db.execute(q)).scalars().all())
        except SQLAlchemyError as e:
            logger.exception("Не удалось прочитать изъятия %s — %s", start, end)
            raise RetrievalError("Не удалось загрузить изъятия") from e

    async def total(self) -> Decimal:
        """Сумма всех изъятий за всё время."""
        q = select(func.coalesce(func.sum(CashWithdrawal.amount), 0))
        try:
            return from_db_total((await self.db.execute(q)).scalar_one())
        except SQLAlchemyError as e:
            logger.exception("Не удалось посчитать сумму изъятий")
            raise RetrievalError("Не удалось загрузить изъятия") from e

    async def create(self, admin_id: Optional[int], amount, note: Optional[str] = None) -> CashWithdrawal:
        if admin_id is None:
            raise ValidationError("Не указан администратор")
        row = CashWithdrawal(
            admin_id=admin_id,
            amount=clean_amount(amount),
            note=clean_note(note),
            created_at=self._clock(),
        )
        self.db.add(row)
        await self.db.commit()
        self._invalidate(row)
        logger.info("Изъятие id=%s сумма=%s записал admin_id=%s", row.id, row.amount, admin_id)
        return row

    async def update(self, withdrawal_id: int, amount, note=KEEP_NOTE) -> CashWithdrawal:
        """Меняются только сумма и комментарий; admin_id и created_at остаются."""
        value = clean_amount(amount)
        row = await self._get(withdrawal_id)
        row.amount = value
        if note is not KEEP_NOTE:
            row.note = clean_note(note)
        await self.db.commit()
        self._invalidate(row)
        logger.info("Изъятие id=%s изменено: сумма=%s", row.id, row.amount)
        return row

    async def delete(self, withdrawal_id: int) -> None:
        row = await self._get(withdrawal_id)
        day, amount = row.created_at.date(), row.amount
        await self.db.delete(row)
        await self.db.commit()
        if self.cache is not None:
            self.cache.invalidate_day(day)
        logger.info("Изъятие id=%s удалено (сумма=%s)", withdrawal_id, amount)

    async def _get(self, withdrawal_id: int) -> CashWithdrawal:
        r = await self.db.execute(select(CashWithdrawal).where(CashWithdrawal.id == withdrawal_id))
        row = r.scalar_one_or_none()
        if not row:
            raise NotFoundError(f"Изъятие {withdrawal_id} не найдено")
        return row

    def _invalidate(self, row: CashWithdrawal) -> None:
        if self.cache is not None:
            self.cache.invalidate_day(row.created_at.date())
