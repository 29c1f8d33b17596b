"""API кассы: сводка за период, закрытия касс, продажи, изъятия наличных."""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.api.auth import RequireAdmin, RequireAnyAuth, RequireFinanceAccess, UserInfo
from backoffice.core.database import get_db
from backoffice.core.errors import ValidationError
from backoffice.core.money import format_money, money_sum
from backoffice.schemas.finance import (
    BalanceEntryResponse,
    CashInShopResponse,
    OpeningResponse,
    PeriodResponse,
    ReconciliationResponse,
    SalesSummaryResponse,
    WithdrawalCreate,
    WithdrawalResponse,
    WithdrawalUpdate,
)
from backoffice.services.balance_ledger import list_balances, opening_for
from backoffice.services.directory import load_directory
from backoffice.services.periods import (
    DATE_FORMAT,
    parse_date_range,
    parse_day,
    parse_open_range,
    resolve_period,
)
from backoffice.services.reconciliation import (
    FinanceContext,
    balance_to_response,
    withdrawal_to_response,
)
from backoffice.services.sales_summary import summarize
from backoffice.services.withdrawal_ledger import KEEP_NOTE

router = APIRouter(prefix="/finance", tags=["finance"])


def get_finance(request: Request) -> FinanceContext:
    return request.app.state.finance


def _period(period: Optional[str], start_date: Optional[str], end_date: Optional[str]):
    """period=today|week|month|custom; без period — произвольный по start_date/end_date."""
    return resolve_period(period or "custom", start_date, end_date)


def _range(period: Optional[str], start_date: Optional[str], end_date: Optional[str]):
    """С period — его границы; без period любую из дат можно опустить."""
    if period:
        return parse_date_range(*resolve_period(period, start_date, end_date))
    return parse_open_range(start_date, end_date)


@router.get("/period", response_model=PeriodResponse)
async def get_period(
    mode: str = Query("today", description="today | week | month | custom"),
    start_date: Optional[str] = Query(None, description="YYYY-MM-DD, для custom"),
    end_date: Optional[str] = Query(None, description="YYYY-MM-DD, для custom"),
    _user: UserInfo = Depends(RequireAnyAuth),
):
    """Границы периода, которые будут использованы в сводке."""
    start, end = resolve_period(mode, start_date, end_date)
    return PeriodResponse(mode=mode, start_date=start, end_date=end)


@router.get("/summary", response_model=ReconciliationResponse)
async def get_summary(
    period: Optional[str] = Query(None, description="today | week | month | custom"),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    finance: FinanceContext = Depends(get_finance),
    _user: UserInfo = Depends(RequireFinanceAccess),
):
    """Сводка: итоги по кассирам, итоги периода, изъятия, продажи по чекам."""
    start, end = _period(period, start_date, end_date)
    return await finance.reconciler.reconcile(start, end)


@router.get("/balances", response_model=List[BalanceEntryResponse])
async def get_balances(
    period: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    operator_id: Optional[int] = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireFinanceAccess),
):
    """Закрытия касс за период с расхождением closing и расчёта."""
    d_from, d_to = _range(period, start_date, end_date)
    rows = await list_balances(db, d_from, d_to, operator_id=operator_id)
    directory = await load_directory(db)
    return [balance_to_response(b, directory) for b in rows]


@router.get("/my-balances", response_model=List[BalanceEntryResponse])
async def get_my_balances(
    period: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireAnyAuth),
):
    """Свои закрытия касс: доступно любому сотруднику, в том числе кассиру."""
    d_from, d_to = _range(period, start_date, end_date)
    rows = await list_balances(db, d_from, d_to, operator_id=user.id)
    directory = await load_directory(db)
    return [balance_to_response(b, directory) for b in rows]


@router.get("/opening", response_model=OpeningResponse)
async def get_opening(
    operator_id: Optional[int] = Query(None, description="По умолчанию — текущий пользователь"),
    date: Optional[str] = Query(None, description="YYYY-MM-DD, по умолчанию сегодня"),
    db: AsyncSession = Depends(get_db),
    user: UserInfo = Depends(RequireAnyAuth),
):
    """Остаток на начало дня: closing за предыдущий день."""
    day_str = date or resolve_period("today")[0]
    day = parse_day(day_str)
    op_id = operator_id if operator_id is not None else user.id
    opening = await opening_for(db, op_id, day)
    return OpeningResponse(operator_id=op_id, date=day.strftime(DATE_FORMAT), opening=opening)


@router.get("/sales-summary", response_model=SalesSummaryResponse)
async def get_sales_summary(
    period: Optional[str] = Query(None),
    date: Optional[str] = Query(None, description="YYYY-MM-DD, один день"),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireFinanceAccess),
):
    """Продажи по чекам за период: наличные, карта, количество чеков."""
    if date:
        d_from = d_to = parse_day(date)
    elif period or start_date or end_date:
        d_from, d_to = _range(period, start_date, end_date)
    else:
        raise ValidationError("Укажите date, period или start_date/end_date")
    return await summarize(db, d_from, d_to)


@router.get("/cash-in-shop", response_model=CashInShopResponse)
async def get_cash_in_shop(
    finance: FinanceContext = Depends(get_finance),
    _user: UserInfo = Depends(RequireAdmin),
):
    """Наличные в магазине за всё время: продажи наличными минус все изъятия."""
    return await finance.reconciler.cash_in_shop()


@router.get("/withdrawals", response_model=List[WithdrawalResponse])
async def list_withdrawals(
    period: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    finance: FinanceContext = Depends(get_finance),
    _user: UserInfo = Depends(RequireFinanceAccess),
):
    """Изъятия за период, последние сверху. Любую из дат можно опустить."""
    d_from, d_to = _range(period, start_date, end_date)
    rows = await finance.ledger(db).list_withdrawals(d_from, d_to)
    directory = await load_directory(db)
    return [withdrawal_to_response(w, directory) for w in rows]


@router.get("/my-withdrawals", response_model=List[WithdrawalResponse])
async def list_my_withdrawals(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    finance: FinanceContext = Depends(get_finance),
    user: UserInfo = Depends(RequireAdmin),
):
    """Изъятия, записанные текущим администратором. Без дат — за всё время."""
    d_from = d_to = None
    if start_date or end_date:
        d_from, d_to = parse_open_range(start_date, end_date)
    rows = await finance.ledger(db).list_withdrawals(d_from, d_to, admin_id=user.id)
    directory = await load_directory(db)
    return [withdrawal_to_response(w, directory) for w in rows]


# Excel считает формулой ячейку, начинающуюся с этих символов
FORMULA_PREFIXES = ("=", "+", "-", "@")


def _csv_cell(value) -> str:
    text = str(value)
    if text.startswith(FORMULA_PREFIXES):
        text = "'" + text
    return '"' + text.replace('"', '""') + '"'


@router.get("/withdrawals/export")
async def export_withdrawals(
    period: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    finance: FinanceContext = Depends(get_finance),
    _user: UserInfo = Depends(RequireFinanceAccess),
):
    """Отчёт по изъятиям в CSV."""
    start, end = _period(period, start_date, end_date)
    d_from, d_to = parse_date_range(start, end)
    rows = await finance.ledger(db).list_withdrawals(d_from, d_to)
    directory = await load_directory(db)

    def _row(*cells):
        return ",".join(_csv_cell(c) for c in cells) + "\r\n"

    lines = [
        _row("Изъятия наличных", f"{start} — {end}"),
        _row("Всего изъято", format_money(money_sum(w.amount for w in rows))),
        _row("Записей", len(rows)),
        _row("", ""),
        _row("Дата", "Время", "Сумма", "Администратор", "Комментарий"),
    ]
    for w in rows:
        lines.append(_row(
            w.created_at.strftime(DATE_FORMAT),
            w.created_at.strftime("%H:%M"),
            format_money(w.amount),
            directory.resolve_name(w.admin_id),
            w.note or "—",
        ))
    content = "\ufeff" + "".join(lines)  # BOM для Excel
    filename = f"withdrawals_{start}_{end}.csv"
    return StreamingResponse(
        iter([content]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/withdrawals", response_model=WithdrawalResponse, status_code=201)
async def create_withdrawal(
    body: WithdrawalCreate,
    db: AsyncSession = Depends(get_db),
    finance: FinanceContext = Depends(get_finance),
    user: UserInfo = Depends(RequireAdmin),
):
    """Записать изъятие наличных из кассы."""
    row = await finance.ledger(db).create(user.id, body.amount, body.note)
    directory = await load_directory(db)
    return withdrawal_to_response(row, directory)


@router.patch("/withdrawals/{withdrawal_id}", response_model=WithdrawalResponse)
async def update_withdrawal(
    withdrawal_id: int,
    body: WithdrawalUpdate,
    db: AsyncSession = Depends(get_db),
    finance: FinanceContext = Depends(get_finance),
    _user: UserInfo = Depends(RequireAdmin),
):
    """Изменить сумму и комментарий изъятия."""
    note = body.note if "note" in body.model_fields_set else KEEP_NOTE
    row = await finance.ledger(db).update(withdrawal_id, body.amount, note)
    directory = await load_directory(db)
    return withdrawal_to_response(row, directory)


@router.delete("/withdrawals/{withdrawal_id}", status_code=204)
async def delete_withdrawal(
    withdrawal_id: int,
    db: AsyncSession = Depends(get_db),
    finance: FinanceContext = Depends(get_finance),
    _user: UserInfo = Depends(RequireAdmin),
):
    """Удалить изъятие насовсем."""
    await finance.ledger(db).delete(withdrawal_id)
    return Response(status_code=204)
