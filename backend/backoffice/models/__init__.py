from backoffice.core.database import Base
from backoffice.models.employee import Employee, EmployeeRole
from backoffice.models.cash_balance import CashBalance
from backoffice.models.cash_withdrawal import CashWithdrawal
from backoffice.models.invoice import Invoice

__all__ = [
    "Base",
    "CashBalance",
    "CashWithdrawal",
    "Employee",
    "EmployeeRole",
    "Invoice",
]
