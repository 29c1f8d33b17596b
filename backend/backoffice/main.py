from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import select

from backoffice.config import settings
from backoffice.core.database import engine, Base, async_session_maker
from backoffice.core.errors import FinanceError
from backoffice.core.logging_config import setup_logging, get_logger
from backoffice.models import Employee
from backoffice.models.employee import EmployeeRole
from backoffice.api.auth import router as auth_router
from backoffice.api.employees import router as employees_router
from backoffice.api.finance import router as finance_router
from backoffice.services.auth_service import hash_password
from backoffice.services.reconciliation import FinanceContext

setup_logging()
logger = get_logger(__name__)


async def ensure_superuser():
    """Создать администратора из настроек, если такого логина ещё нет."""
    async with async_session_maker() as session:
        r = await session.execute(select(Employee).where(Employee.login == settings.superuser_login))
        if r.scalar_one_or_none() is not None:
            return
        emp = Employee(
            name=settings.superuser_name,
            role=EmployeeRole.ROLE_ADMIN,
            login=settings.superuser_login,
            password_hash=hash_password(settings.superuser_password),
            is_active=True,
        )
        session.add(emp)
        await session.commit()
        logger.info("Создан администратор: %s", settings.superuser_login)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Таблицы БД проверены/созданы")
    try:
        await ensure_superuser()
    except Exception as e:
        logger.warning("Администратор: %s", e)
    app.state.finance = FinanceContext(async_session_maker, settings.finance_cache_ttl_seconds)
    yield
    await engine.dispose()


app = FastAPI(title="Бэк-офис магазина", version="1.0.0", lifespan=lifespan)


@app.exception_handler(FinanceError)
async def finance_error_handler(request: Request, exc: FinanceError):
    if exc.status_code >= 500:
        logger.error("%s %s: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Необработанная ошибка: %s", exc)
    detail = "Внутренняя ошибка сервера"
    err_str = str(exc).lower()
    if "duplicate key" in err_str or "unique constraint" in err_str:
        detail = "Конфликт данных (дубликат). Обновите страницу и повторите."
    elif "column" in err_str and "does not exist" in err_str:
        detail = "Устаревшая схема БД. Перезапустите сервис."
    return JSONResponse(
        status_code=500,
        content={"detail": detail},
    )


origins = [o.strip() for o in settings.cors_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(auth_router)
app.include_router(employees_router)
app.include_router(finance_router)


@app.get("/health")
def health():
    return {"status": "ok"}
