"""Продажи по чекам за период: наличные, карта, количество чеков."""
from datetime import date
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.errors import RetrievalError
from backoffice.core.logging_config import get_logger
from backoffice.core.money import from_db_total
from backoffice.models import Invoice
from backoffice.schemas.finance import SalesSummaryResponse
from backoffice.services.periods import day_bounds

logger = get_logger(__name__)


async def summarize(
    db: AsyncSession,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> SalesSummaryResponse:
    """Без границ — за всё время. Удалённые чеки не учитываются."""
    q = select(
        func.coalesce(func.sum(Invoice.cash_amount), 0).label("cash_total"),
        func.coalesce(func.sum(Invoice.card_amount), 0).label("card_total"),
        func.count(Invoice.id).label("cnt"),
    ).where(Invoice.deleted_at.is_(None))
    if start is not None and end is not None:
        since, until = day_bounds(start, end)
        q = q.where(Invoice.created_at >= since, Invoice.created_at < until)
    try:
        row = (await db.execute(q)).one()
        cash_total = from_db_total(row.cash_total)
        card_total = from_db_total(row.card_total)
    except SQLAlchemyError as e:
        logger.exception("Не удалось посчитать продажи %s — %s", start, end)
        raise RetrievalError("Не удалось загрузить продажи по чекам") from e
    except ValueError as e:
        raise RetrievalError(f"Некорректные суммы в чеках: {e}") from e
    return SalesSummaryResponse(
        cash_total=cash_total,
        card_total=card_total,
        total_sales=cash_total + card_total,
        invoice_count=row.cnt or 0,
    )
