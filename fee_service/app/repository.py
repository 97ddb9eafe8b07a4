from __future__ import annotations

import datetime as dt
import uuid
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import bindparam, text
from sqlalchemy.orm import Session

from fee_service.app.ledger import to_money
from fee_service.app.session import SessionContext, require_actor


STUDENT_COLUMNS = """
    s.id, s.student_name, s.class_name, s.total_fees, s.parent_name,
    s.parent_contact, s.status, s.created_by, s.created_at
"""

PAYMENT_COLUMNS = """
    p.id, p.student_id, p.amount, p.payment_date, p.payment_method,
    p.notes, p.created_by, p.created_at
"""


def _as_date(value: Any) -> dt.date:
    # SQLite hands DATE back as text
    if isinstance(value, str):
        return dt.date.fromisoformat(value[:10])
    if isinstance(value, dt.datetime):
        return value.date()
    return value


def _student(row) -> Dict[str, Any]:
    out = dict(row)
    out["total_fees"] = to_money(out["total_fees"])
    return out


def _payment(row) -> Dict[str, Any]:
    out = dict(row)
    out["amount"] = to_money(out["amount"])
    out["payment_date"] = _as_date(out["payment_date"])
    return out


def _like_pattern(search: str) -> str:
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped.lower()}%"


# ---- reads ----

def get_student(db: Session, ctx: SessionContext, student_id: str) -> Optional[Dict[str, Any]]:
    require_actor(ctx)
    row = db.execute(
        text(f"SELECT {STUDENT_COLUMNS} FROM students s WHERE s.id = :sid"),
        {"sid": student_id},
    ).mappings().first()
    return _student(row) if row else None


def payments_for(db: Session, ctx: SessionContext, student_ids: Iterable[str]) -> Dict[str, List[Dict[str, Any]]]:
    """Payments grouped by student id; every requested id is present in the result."""
    require_actor(ctx)
    ids = list(student_ids)
    grouped: Dict[str, List[Dict[str, Any]]] = {sid: [] for sid in ids}
    if not ids:
        return grouped
    sql = text(
        f"""
        SELECT {PAYMENT_COLUMNS}
        FROM payments p
        WHERE p.student_id IN :ids
        ORDER BY p.payment_date DESC, p.created_at DESC
        """
    ).bindparams(bindparam("ids", expanding=True))
    for row in db.execute(sql, {"ids": ids}).mappings():
        payment = _payment(row)
        grouped[payment["student_id"]].append(payment)
    return grouped


def get_student_with_payments(db: Session, ctx: SessionContext, student_id: str) -> Optional[Dict[str, Any]]:
    student = get_student(db, ctx, student_id)
    if student is None:
        return None
    student["payments"] = payments_for(db, ctx, [student_id])[student_id]
    return student


def list_active_students(db: Session, ctx: SessionContext, search: str | None = None) -> List[Dict[str, Any]]:
    """Active students ordered by name, each with its payments attached."""
    require_actor(ctx)
    params: Dict[str, Any] = {"status": "active"}
    where = "s.status = :status"
    if search:
        where += " AND LOWER(s.student_name) LIKE :pattern ESCAPE '\\'"
        params["pattern"] = _like_pattern(search)

    rows = db.execute(
        text(f"SELECT {STUDENT_COLUMNS} FROM students s WHERE {where} ORDER BY s.student_name ASC, s.id ASC"),
        params,
    ).mappings().all()
    students = [_student(r) for r in rows]
    grouped = payments_for(db, ctx, [s["id"] for s in students])
    for s in students:
        s["payments"] = grouped[s["id"]]
    return students


def list_all_students(db: Session, ctx: SessionContext) -> List[Dict[str, Any]]:
    require_actor(ctx)
    rows = db.execute(text(f"SELECT {STUDENT_COLUMNS} FROM students s ORDER BY s.student_name ASC")).mappings().all()
    return [_student(r) for r in rows]


def list_all_payments(db: Session, ctx: SessionContext) -> List[Dict[str, Any]]:
    require_actor(ctx)
    rows = db.execute(text(f"SELECT {PAYMENT_COLUMNS} FROM payments p")).mappings().all()
    return [_payment(r) for r in rows]


# ---- writes ----

def insert_student(
    db: Session,
    ctx: SessionContext,
    *,
    student_name: str,
    class_name: str,
    total_fees,
    parent_name: str | None,
    parent_contact: str | None,
) -> Dict[str, Any]:
    actor = require_actor(ctx)
    record = {
        "id": str(uuid.uuid4()),
        "student_name": student_name,
        "class_name": class_name,
        "total_fees": to_money(total_fees),
        "parent_name": parent_name,
        "parent_contact": parent_contact,
        "status": "active",
        "created_by": actor.user_id,
        "created_at": dt.datetime.now(dt.timezone.utc).replace(tzinfo=None),
    }
    db.execute(
        text(
            """
            INSERT INTO students (id, student_name, class_name, total_fees, parent_name,
                                  parent_contact, status, created_by, created_at)
            VALUES (:id, :student_name, :class_name, :total_fees, :parent_name,
                    :parent_contact, :status, :created_by, :created_at)
            """
        ),
        {
            **record,
            "total_fees": str(record["total_fees"]),
            "created_at": record["created_at"].isoformat(sep=" "),
        },
    )
    return record


def insert_payment(
    db: Session,
    ctx: SessionContext,
    *,
    student_id: str,
    amount,
    payment_date: dt.date,
    payment_method: str | None,
    notes: str | None,
) -> Dict[str, Any]:
    actor = require_actor(ctx)
    record = {
        "id": str(uuid.uuid4()),
        "student_id": student_id,
        "amount": to_money(amount),
        "payment_date": payment_date,
        "payment_method": payment_method,
        "notes": notes,
        "created_by": actor.user_id,
        "created_at": dt.datetime.now(dt.timezone.utc).replace(tzinfo=None),
    }
    db.execute(
        text(
            """
            INSERT INTO payments (id, student_id, amount, payment_date, payment_method,
                                  notes, created_by, created_at)
            VALUES (:id, :student_id, :amount, :payment_date, :payment_method,
                    :notes, :created_by, :created_at)
            """
        ),
        {
            **record,
            "amount": str(record["amount"]),
            "payment_date": payment_date.isoformat(),
            "created_at": record["created_at"].isoformat(sep=" "),
        },
    )
    return record
