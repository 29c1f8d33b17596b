"""
Денежные суммы: только Decimal, без float.

Суммирование точное, округление (банковское, до копеек) — только при выводе.
"""
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Iterable, Union

CENT = Decimal("0.01")
ZERO = Decimal("0")

MoneyInput = Union[Decimal, int, str]


def to_money(value: MoneyInput) -> Decimal:
    """Привести значение к Decimal. float не принимается — в нём уже потеряна точность."""
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"Сумма должна быть Decimal, int или строкой, получено {type(value).__name__}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValueError(f"Некорректная сумма: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Некорректная сумма: {value!r}")
    return result


def money_sum(values: Iterable[Decimal]) -> Decimal:
    total = ZERO
    for v in values:
        total += v
    return total


def format_money(value: Decimal) -> str:
    """Строка с двумя знаками после запятой: Decimal("150") -> "150.00"."""
    return str(value.quantize(CENT, rounding=ROUND_HALF_EVEN))


def from_db_total(value) -> Decimal:
    """Результат SUM из БД. PostgreSQL отдаёт Decimal, SQLite может отдать float — приводим к копейкам."""
    if value is None:
        return ZERO
    if isinstance(value, float):
        return to_money(repr(value)).quantize(CENT)
    return to_money(value)
