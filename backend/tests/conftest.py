"""Фикстуры для тестов API."""
import os
import tempfile

import pytest
from fastapi.testclient import TestClient

# Настройки читаются при импорте приложения, поэтому окружение задаём здесь.
# Тесты идут на SQLite во временной папке; TEST_DATABASE_URL — чтобы проверить на PostgreSQL.
_tmp_dir = tempfile.mkdtemp(prefix="backoffice-tests-")
os.environ["DATABASE_URL"] = os.environ.get("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{_tmp_dir}/test.db"
os.environ["SUPERUSER_LOGIN"] = "admin"
os.environ["SUPERUSER_PASSWORD"] = "admin-pass"
os.environ["FINANCE_CACHE_TTL_SECONDS"] = "300"

ADMIN_LOGIN = os.environ["SUPERUSER_LOGIN"]
ADMIN_PASSWORD = os.environ["SUPERUSER_PASSWORD"]


async def _reset_database():
    from backoffice.core.database import engine, Base
    from backoffice.main import ensure_superuser

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    await ensure_superuser()


@pytest.fixture
def client():
    """Тестовый клиент с чистой БД и свежим кэшем сводок."""
    from backoffice.main import app

    with TestClient(app) as c:
        c.portal.call(_reset_database)
        app.state.finance.cache.clear()
        yield c


@pytest.fixture
def add_rows(client):
    """Записать строки напрямую в БД (закрытия касс, чеки) — их пишет не этот сервис."""
    from backoffice.core.database import async_session_maker

    async def _add(rows):
        async with async_session_maker() as session:
            session.add_all(rows)
            await session.commit()
            return [r.id for r in rows]

    def _call(*rows):
        return client.portal.call(_add, list(rows))
    return _call


def login(client, username, password):
    r = client.post("/auth/login", data={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return {"Authorization": f"Bearer {r.json()['access_token']}"}


@pytest.fixture
def admin_headers(client):
    return login(client, ADMIN_LOGIN, ADMIN_PASSWORD)


@pytest.fixture
def make_employee(client, admin_headers):
    """Создать сотрудника через API и вернуть (id, заголовки авторизации)."""
    def _make(name, role, login_name, password="secret-1"):
        r = client.post(
            "/employees",
            json={"name": name, "role": role, "login": login_name, "password": password},
            headers=admin_headers,
        )
        assert r.status_code == 200, r.text
        return r.json()["id"], login(client, login_name, password)
    return _make
