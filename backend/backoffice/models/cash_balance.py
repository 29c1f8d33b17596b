"""Закрытие кассы: остатки одного кассира за один день."""
import datetime
from decimal import Decimal
from sqlalchemy import Date, DateTime, Integer, Numeric, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.core.database import Base


class CashBalance(Base):
    """
    Строки пишет закрытие смены на кассе; здесь они только читаются.
    closing не обязан равняться opening + cash_total + card_total.
    """
    __tablename__ = "cash_balances"
    __table_args__ = (UniqueConstraint("operator_id", "date", name="uq_cash_balances_operator_date"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    # Без внешнего ключа: кассир мог быть удалён из справочника
    operator_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False, index=True)
    opening: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    cash_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    card_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    closing: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime, default=datetime.datetime.utcnow, nullable=False
    )
