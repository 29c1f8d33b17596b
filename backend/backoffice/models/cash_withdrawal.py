"""Изъятие наличных из кассы."""
from datetime import datetime
from decimal import Decimal
from typing import Optional
from sqlalchemy import DateTime, Integer, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from backoffice.core.database import Base


class CashWithdrawal(Base):
    __tablename__ = "cash_withdrawals"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    admin_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)  # кто записал
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Не меняется при редактировании
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.now, nullable=False, index=True)
