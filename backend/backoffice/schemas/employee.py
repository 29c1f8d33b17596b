from typing import Optional

from pydantic import BaseModel

from backoffice.models import EmployeeRole


class EmployeeResponse(BaseModel):
    id: int
    name: str
    role: str
    login: Optional[str] = None
    is_active: bool


class EmployeeCreate(BaseModel):
    name: str
    role: EmployeeRole
    login: Optional[str] = None
    password: Optional[str] = None


class EmployeeUpdate(BaseModel):
    name: Optional[str] = None
    role: Optional[EmployeeRole] = None
    login: Optional[str] = None
    password: Optional[str] = None
    is_active: Optional[bool] = None
