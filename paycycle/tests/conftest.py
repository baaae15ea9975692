import os
import tempfile

_default_test_secret = "test-jwt-secret-for-pytest-only-0000000000000000"
if len(os.environ.get("JWT_SECRET", "")) < 32:
    os.environ["JWT_SECRET"] = _default_test_secret
os.environ.setdefault("ENV", "test")

import subprocess
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url

_sqlite_path = os.path.join(tempfile.gettempdir(), f"paycycle_test_{os.getpid()}.db")
TEST_DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{_sqlite_path}")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from paycycle import database
from paycycle import models  # noqa: F401
from paycycle.models.employee import Employee
from paycycle.services import payroll_settings_service


def _ensure_database_exists(database_url: str) -> None:
    url = make_url(database_url)

    if not url.drivername.startswith("postgresql"):
        return

    db_name = url.database
    admin_url = url.set(database="postgres")
    admin_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")

    try:
        with admin_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": db_name},
            ).scalar()
            if not exists:
                safe_db_name = db_name.replace('"', '""')
                conn.execute(text(f'CREATE DATABASE "{safe_db_name}"'))
    finally:
        admin_engine.dispose()


def _clear_tables() -> None:
    if database.is_postgres():
        with database.engine.begin() as conn:
            rows = conn.execute(
                text(
                    """
                    SELECT tablename
                    FROM pg_tables
                    WHERE schemaname = 'public'
                      AND tablename <> 'alembic_version'
                    """
                )
            ).fetchall()

            table_names = [row[0] for row in rows]
            if table_names:
                quoted = ", ".join([f'"public"."{name}"' for name in table_names])
                conn.execute(text(f"TRUNCATE TABLE {quoted} RESTART IDENTITY CASCADE"))
        return

    with database.engine.begin() as conn:
        for table in reversed(database.Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="session", autouse=True)
def _prepare_test_database():
    database.configure_database()

    if database.is_postgres():
        _ensure_database_exists(TEST_DATABASE_URL)

        env = os.environ.copy()
        env["DATABASE_URL"] = TEST_DATABASE_URL

        subprocess.run(
            ["alembic", "upgrade", "head"],
            check=True,
            cwd=Path(__file__).resolve().parents[2],
            env=env,
        )
    else:
        database.Base.metadata.drop_all(database.engine)
        database.Base.metadata.create_all(database.engine)

    yield

    if not database.is_postgres():
        database.engine.dispose()
        if os.path.exists(_sqlite_path):
            os.remove(_sqlite_path)


@pytest.fixture(scope="function", autouse=True)
def _truncate_tables_between_tests():
    _clear_tables()
    yield
    _clear_tables()


@pytest.fixture
def make_settings():
    """Create a cycle setting; defaults to a weekly cycle starting Mon 2024-01-01."""

    def _make(
        company_id: int = 1,
        name: str = "Weekly crew",
        cycle_type: str = "Weekly",
        from_date: date = date(2024, 1, 1),
        to_date: date = date(2024, 1, 7),
        check_date: date = date(2024, 1, 5),
        actual_check_date: date = date(2024, 1, 7),
        **second_half,
    ):
        return payroll_settings_service.create_settings(
            company_id=company_id,
            name=name,
            cycle_type=cycle_type,
            from_date=from_date,
            to_date=to_date,
            check_date=check_date,
            actual_check_date=actual_check_date,
            created_by="test",
            **second_half,
        )

    return _make


@pytest.fixture
def make_employee():
    def _make(
        company_id: int = 1,
        name: str = "Alice",
        settings_id=None,
        balance_cents: int = 0,
        standard_pay_cents: int = 0,
        hours_worked=0,
    ) -> Employee:
        db = database.SessionLocal()
        try:
            row = Employee(
                company_id=company_id,
                name=name,
                is_active=True,
                status="ACTIVE",
                balance_cents=balance_cents,
                standard_pay_cents=standard_pay_cents,
                hours_worked=hours_worked,
                payroll_settings_id=settings_id,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return row
        finally:
            db.close()

    return _make
