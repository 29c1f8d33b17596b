"""Справочник имён: id сотрудника -> имя для отображения."""
from typing import Dict, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.models import Employee


class Directory:
    """Снимок справочника на один запрос. Неизвестный id возвращается как есть."""

    def __init__(self, names: Optional[Mapping[int, str]] = None):
        self._names: Dict[int, str] = dict(names or {})

    def resolve_name(self, id_) -> str:
        try:
            name = self._names.get(id_)
        except TypeError:
            name = None
        return name if name else str(id_)

    def __len__(self) -> int:
        return len(self._names)


async def load_directory(db: AsyncSession) -> Directory:
    rows = (await db.execute(select(Employee.id, Employee.name))).all()
    return Directory({r.id: r.name for r in rows})
