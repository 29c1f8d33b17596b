"""Период отчёта: сегодня / неделя / месяц / произвольный."""
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

from backoffice.core.errors import ValidationError

DATE_FORMAT = "%Y-%m-%d"
MODES = ("today", "week", "month", "custom")


def resolve_period(
    mode: str,
    custom_start: Optional[str] = None,
    custom_end: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[str, str]:
    """
    Границы периода (включительно) в формате YYYY-MM-DD по локальному календарю.
    week — скользящие 7 дней назад от now, а не календарная неделя.
    custom передаётся как есть: корректность диапазона проверяют читатели.
    """
    now = now or datetime.now()
    today = now.date()
    if mode == "today":
        start, end = today, today
    elif mode == "week":
        start, end = today - timedelta(days=7), today
    elif mode == "month":
        start, end = today.replace(day=1), today
    elif mode == "custom":
        if not custom_start or not custom_end:
            raise ValidationError("Для произвольного периода нужны обе даты")
        return custom_start, custom_end
    else:
        raise ValidationError(f"Неизвестный период: {mode}")
    return start.strftime(DATE_FORMAT), end.strftime(DATE_FORMAT)


def parse_day(s: str) -> date:
    try:
        return datetime.strptime(s, DATE_FORMAT).date()
    except (TypeError, ValueError):
        raise ValidationError(f"Неверная дата: {s!r}, ожидается YYYY-MM-DD")


def parse_date_range(start: Optional[str], end: Optional[str]) -> Tuple[date, date]:
    """Проверка диапазона на стороне читателей: обе даты, формат, start <= end."""
    if not start or not end:
        raise ValidationError("Не задан период (start_date и end_date)")
    d_from = parse_day(start)
    d_to = parse_day(end)
    if d_from > d_to:
        raise ValidationError(f"Начало периода {start} позже конца {end}")
    return d_from, d_to


EPOCH = date(1970, 1, 1)


def parse_open_range(
    start: Optional[str],
    end: Optional[str],
    today: Optional[date] = None,
) -> Tuple[date, date]:
    """Диапазон, где любую границу можно опустить: без начала — с 1970-01-01, без конца — по сегодня."""
    today = today or date.today()
    return parse_date_range(start or EPOCH.strftime(DATE_FORMAT), end or today.strftime(DATE_FORMAT))


def day_bounds(d_from: date, d_to: date) -> Tuple[datetime, datetime]:
    """Полуинтервал [начало d_from, начало дня после d_to) для фильтра по created_at."""
    start = datetime.combine(d_from, datetime.min.time())
    end = datetime.combine(d_to, datetime.min.time()) + timedelta(days=1)
    return start, end
