"""Схемы кассового модуля: закрытия, изъятия, продажи, сводка по периоду."""
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, PlainSerializer

from backoffice.core.money import format_money

# Деньги уходят в JSON строкой "150.00", никогда не float
Money = Annotated[Decimal, PlainSerializer(format_money, return_type=str, when_used="json")]


class PeriodResponse(BaseModel):
    mode: str  # today | week | month | custom
    start_date: str
    end_date: str


class WithdrawalCreate(BaseModel):
    amount: Decimal
    note: Optional[str] = None


class WithdrawalUpdate(BaseModel):
    """Меняются только сумма и комментарий. Если note не передан — остаётся прежним."""
    amount: Decimal
    note: Optional[str] = None


class WithdrawalResponse(BaseModel):
    id: int
    admin_id: int
    admin_name: str
    amount: Money
    note: Optional[str] = None
    created_at: str


class BalanceEntryResponse(BaseModel):
    id: int
    operator_id: int
    operator_name: str
    date: str
    opening: Money
    cash_total: Money
    card_total: Money
    closing: Money
    discrepancy: Money
    """closing − (opening + cash_total + card_total); не исправляется, только показывается."""


class SalesSummaryResponse(BaseModel):
    cash_total: Money
    card_total: Money
    total_sales: Money
    invoice_count: int


class OperatorTotals(BaseModel):
    """Итоги одного кассира за период."""

    operator_id: int
    operator_name: str
    opening: Money
    cash_total: Money
    card_total: Money
    closing: Money
    discrepancy: Money


class PeriodTotals(BaseModel):
    """Итоги по всем кассирам + изъятия и наличные в кассе."""

    opening: Money
    cash_total: Money
    card_total: Money
    closing: Money
    withdrawal_total: Money
    net_cash: Money
    """Наличные продажи по чекам минус изъятия."""


class ReconciliationResponse(BaseModel):
    start_date: str
    end_date: str
    operator_totals: List[OperatorTotals]
    period_totals: PeriodTotals
    withdrawals: List[WithdrawalResponse]
    sales: SalesSummaryResponse


class CashInShopResponse(BaseModel):
    """Наличные в магазине за всё время."""

    total_cash_sales: Money
    total_withdrawals: Money
    cash_in_shop: Money


class OpeningResponse(BaseModel):
    operator_id: int
    date: str
    opening: Money
