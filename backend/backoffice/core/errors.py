"""Ошибки кассового модуля. HTTP-коды назначаются обработчиками в main.py."""


class FinanceError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(FinanceError):
    """Неверные входные данные: сумма ≤ 0, нет или неверный период."""
    status_code = 400


class NotFoundError(FinanceError):
    """Изъятие с таким id не найдено."""
    status_code = 404


class RetrievalError(FinanceError):
    """Хранилище недоступно или вернуло некорректные данные."""
    status_code = 503
