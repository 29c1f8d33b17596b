"""Справочник сотрудников: кассиры, менеджеры, администраторы."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.api.auth import RequireAdmin, RequireFinanceAccess, UserInfo
from backoffice.core.database import get_db
from backoffice.core.logging_config import get_logger
from backoffice.models import Employee
from backoffice.models.employee import EmployeeRole
from backoffice.schemas.employee import EmployeeCreate, EmployeeResponse, EmployeeUpdate
from backoffice.services.auth_service import hash_password

logger = get_logger(__name__)
router = APIRouter(prefix="/employees", tags=["employees"])


def _emp_to_response(e: Employee) -> EmployeeResponse:
    return EmployeeResponse(
        id=e.id,
        name=e.name,
        role=e.role.value,
        login=e.login,
        is_active=e.is_active,
    )


async def _login_taken(db: AsyncSession, login: str, exclude_id: Optional[int] = None) -> bool:
    q = select(Employee.id).where(Employee.login == login)
    if exclude_id is not None:
        q = q.where(Employee.id != exclude_id)
    return (await db.execute(q)).scalar_one_or_none() is not None


@router.get("", response_model=list[EmployeeResponse])
async def list_employees(
    all_employees: bool = Query(False, alias="all", description="Только для админа: показать и уволенных"),
    db: AsyncSession = Depends(get_db),
    current_user: UserInfo = Depends(RequireFinanceAccess),
):
    q = select(Employee).order_by(Employee.id)
    if not (all_employees and current_user.role == EmployeeRole.ROLE_ADMIN.value):
        q = q.where(Employee.is_active == True)
    employees = (await db.execute(q)).scalars().all()
    return [_emp_to_response(e) for e in employees]


@router.post("", response_model=EmployeeResponse)
async def create_employee(
    data: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireAdmin),
):
    login = data.login.strip() if data.login and data.login.strip() else None
    if login and await _login_taken(db, login):
        raise HTTPException(status_code=400, detail="Логин уже занят")
    emp = Employee(
        name=data.name,
        role=data.role,
        login=login,
        password_hash=hash_password(data.password) if data.password else None,
        is_active=True,
    )
    db.add(emp)
    await db.flush()
    await db.refresh(emp)
    logger.info("Создан сотрудник id=%s (%s)", emp.id, emp.role.value)
    return _emp_to_response(emp)


@router.patch("/{employee_id}", response_model=EmployeeResponse)
async def update_employee(
    employee_id: int,
    data: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    _user: UserInfo = Depends(RequireAdmin),
):
    result = await db.execute(select(Employee).where(Employee.id == employee_id))
    emp = result.scalar_one_or_none()
    if not emp:
        raise HTTPException(status_code=404, detail="Сотрудник не найден")
    if data.name is not None:
        emp.name = data.name
    if data.role is not None:
        emp.role = data.role
    if data.login is not None:
        login = data.login.strip() or None
        if login and await _login_taken(db, login, exclude_id=emp.id):
            raise HTTPException(status_code=400, detail="Логин уже занят")
        emp.login = login
    if data.password is not None and data.password.strip():
        emp.password_hash = hash_password(data.password)
    if data.is_active is not None:
        emp.is_active = data.is_active
    await db.commit()
    await db.refresh(emp)
    return _emp_to_response(emp)
