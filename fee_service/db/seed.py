from __future__ import annotations

"""
Seed data for the fee dashboard.

Adds a handful of students across three classes with a few payments each.
Ids are deterministic so re-running is a no-op.

Run:
  python -m fee_service.db.seed
"""

import uuid
from datetime import date, datetime, timedelta

from sqlalchemy import text

from fee_service.app.db import get_engine, session_scope
from fee_service.db.schema import init_schema


SEED_ACTOR = "seed"

STUDENTS = [
    {"student_name": "Amina Njoroge", "class_name": "Grade 5A", "total_fees": 500, "paid": [200, 150]},
    {"student_name": "Brian Otieno", "class_name": "Grade 5A", "total_fees": 500, "paid": [500]},
    {"student_name": "Chloe Mwangi", "class_name": "Grade 2", "total_fees": 350, "paid": [100]},
    {"student_name": "David Kamau", "class_name": "Grade 10", "total_fees": 800, "paid": []},
    {"student_name": "Esther Wanjiru", "class_name": "Grade 10", "total_fees": 800, "paid": [400, 380]},
]


def _sid(name: str) -> str:
    return str(uuid.uuid5(uuid.NAMESPACE_DNS, f"student-{name}"))


def seed() -> None:
    init_schema(get_engine())
    now = datetime.utcnow().isoformat(sep=" ")
    with session_scope() as db:
        for s in STUDENTS:
            sid = _sid(s["student_name"])
            exists = db.execute(text("SELECT 1 FROM students WHERE id = :id"), {"id": sid}).first()
            if exists:
                continue
            db.execute(
                text(
                    """
                    INSERT INTO students (id, student_name, class_name, total_fees, status, created_by, created_at)
                    VALUES (:id, :name, :class_name, :total_fees, 'active', :created_by, :created_at)
                    """
                ),
                {
                    "id": sid,
                    "name": s["student_name"],
                    "class_name": s["class_name"],
                    "total_fees": str(s["total_fees"]),
                    "created_by": SEED_ACTOR,
                    "created_at": now,
                },
            )
            for i, amount in enumerate(s["paid"]):
                db.execute(
                    text(
                        """
                        INSERT INTO payments (id, student_id, amount, payment_date, payment_method, created_by, created_at)
                        VALUES (:id, :sid, :amount, :payment_date, 'Cash', :created_by, :created_at)
                        """
                    ),
                    {
                        "id": str(uuid.uuid5(uuid.NAMESPACE_DNS, f"{sid}-payment-{i}")),
                        "sid": sid,
                        "amount": str(amount),
                        "payment_date": (date.today() - timedelta(days=30 * (i + 1))).isoformat(),
                        "created_by": SEED_ACTOR,
                        "created_at": now,
                    },
                )


if __name__ == "__main__":
    seed()
    for s in STUDENTS:
        print(f"seeded student: {s['student_name']} ({s['class_name']})")
    print("Fee seed completed.")
