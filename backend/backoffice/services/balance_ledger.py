"""Чтение закрытий касс за период. Только чтение: записи создаёт закрытие смены."""
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.errors import RetrievalError
from backoffice.core.logging_config import get_logger
from backoffice.core.money import ZERO
from backoffice.models import CashBalance

logger = get_logger(__name__)


async def list_balances(
    db: AsyncSession,
    start: date,
    end: date,
    operator_id: Optional[int] = None,
) -> List[CashBalance]:
    """Закрытия всех кассиров (или одного) за [start, end], свежие сверху."""
    q = (
        select(CashBalance)
        .where(CashBalance.date >= start, CashBalance.date <= end)
        .order_by(CashBalance.date.desc(), CashBalance.operator_id)
    )
    if operator_id is not None:
        q = q.where(CashBalance.operator_id == operator_id)
    try:
        return list((await db.execute(q)).scalars().all())
    except SQLAlchemyError as e:
        logger.exception("Не удалось прочитать закрытия касс %s — %s", start, end)
        raise RetrievalError("Не удалось загрузить закрытия касс") from e


async def opening_for(db: AsyncSession, operator_id: int, day: date) -> Decimal:
    """Остаток на начало дня = closing кассира за предыдущий день, иначе 0."""
    previous = day - timedelta(days=1)
    rows = await list_balances(db, previous, previous, operator_id=operator_id)
    return rows[0].closing if rows else ZERO


def discrepancy(entry: CashBalance) -> Decimal:
    """Расхождение закрытия с расчётом. Не исправляется — только показывается."""
    return entry.closing - (entry.opening + entry.cash_total + entry.card_total)
