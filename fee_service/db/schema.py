from __future__ import annotations

"""
DDL for the fee ledger tables. Portable between PostgreSQL and SQLite.

Run:
  python -m fee_service.db.schema
"""

from sqlalchemy import text
from sqlalchemy.engine import Engine


STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS students (
        id              VARCHAR(36)   PRIMARY KEY,
        student_name    VARCHAR(100)  NOT NULL,
        class_name      VARCHAR(50)   NOT NULL,
        total_fees      NUMERIC(12,2) NOT NULL CHECK (total_fees >= 0),
        parent_name     VARCHAR(100),
        parent_contact  VARCHAR(100),
        status          VARCHAR(20)   NOT NULL DEFAULT 'active',
        created_by      VARCHAR(64),
        created_at      TIMESTAMP     NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS payments (
        id              VARCHAR(36)   PRIMARY KEY,
        student_id      VARCHAR(36)   NOT NULL REFERENCES students(id),
        amount          NUMERIC(12,2) NOT NULL CHECK (amount > 0),
        payment_date    DATE          NOT NULL,
        payment_method  VARCHAR(50),
        notes           VARCHAR(500),
        created_by      VARCHAR(64),
        created_at      TIMESTAMP     NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS ix_payments_student_id ON payments (student_id)",
    "CREATE INDEX IF NOT EXISTS ix_students_status_class ON students (status, class_name)",
]


def init_schema(engine: Engine) -> None:
    with engine.begin() as conn:
        for stmt in STATEMENTS:
            conn.execute(text(stmt))


if __name__ == "__main__":
    from fee_service.app.db import get_engine

    init_schema(get_engine())
    print("Fee schema ready.")
