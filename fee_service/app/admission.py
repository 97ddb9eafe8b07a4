"""
Write paths for the dashboard: add a student, record a payment.

Each admission checks the actor, validates the form, persists one row and
returns the ledger event describing the write. Callers apply the event to
the query cache after the transaction commits.
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from libs.event_contracts.ledger_v1 import PaymentRecorded, StudentAdded
from fee_service.app import ledger, repository
from fee_service.app.errors import StudentNotFound, ValidationFailed
from fee_service.app.schemas import PaymentCreate, StudentCreate
from fee_service.app.session import SessionContext, require_actor
from fee_service.app.settings import settings


logger = logging.getLogger(__name__)

NAME_MAX = 100
CLASS_MAX = 50
PARENT_MAX = 100
METHOD_MAX = 50
NOTES_MAX = 500


def _optional_text(value: Optional[str], max_len: int, message: str) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if len(value) > max_len:
        raise ValidationFailed(message)
    return value


def _required_text(value: Optional[str], max_len: int, empty_message: str, long_message: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationFailed(empty_message)
    if len(value) > max_len:
        raise ValidationFailed(long_message)
    return value


def _amount(value: Decimal, ceiling: Decimal, positive_message: str, ceiling_message: str) -> Decimal:
    if not value.is_finite():
        raise ValidationFailed(positive_message)
    # checks apply to the stored (cent-rounded) figure
    value = ledger.to_money(value)
    if value <= 0:
        raise ValidationFailed(positive_message)
    if value > ceiling:
        raise ValidationFailed(ceiling_message)
    return value


@dataclass(frozen=True)
class PaymentDraft:
    amount: Decimal
    payment_date: dt.date
    payment_method: Optional[str]
    notes: Optional[str]


@dataclass(frozen=True)
class StudentDraft:
    student_name: str
    class_name: str
    total_fees: Decimal
    parent_name: Optional[str]
    parent_contact: Optional[str]


def validate_payment(req: PaymentCreate, *, today: Optional[dt.date] = None) -> PaymentDraft:
    today = today or dt.date.today()
    amount = _amount(req.amount, settings.MAX_PAYMENT_AMOUNT, "Amount must be positive", "Amount exceeds maximum")

    if req.payment_date is None or not req.payment_date.strip():
        payment_date = today
    else:
        try:
            payment_date = dt.date.fromisoformat(req.payment_date.strip()[:10])
        except ValueError:
            raise ValidationFailed("Invalid payment date")
        if payment_date > today:
            raise ValidationFailed("Cannot use future dates")

    return PaymentDraft(
        amount=amount,
        payment_date=payment_date,
        payment_method=_optional_text(req.payment_method, METHOD_MAX, "Payment method too long"),
        notes=_optional_text(req.notes, NOTES_MAX, "Notes too long"),
    )


def validate_student(req: StudentCreate) -> StudentDraft:
    return StudentDraft(
        student_name=_required_text(req.student_name, NAME_MAX, "Student name is required", "Student name too long"),
        class_name=_required_text(req.class_name, CLASS_MAX, "Class is required", "Class name too long"),
        total_fees=_amount(req.total_fees, settings.MAX_TOTAL_FEES, "Total fees must be positive", "Total fees exceed maximum"),
        parent_name=_optional_text(req.parent_name, PARENT_MAX, "Parent name too long"),
        parent_contact=_optional_text(req.parent_contact, PARENT_MAX, "Parent contact too long"),
    )


def check_within_balance(amount: Decimal, current_balance: Decimal) -> None:
    # Once a student is settled (balance <= 0) further payments are not capped.
    if amount > current_balance and current_balance > 0:
        raise ValidationFailed("Amount exceeds remaining balance.")


def admit_student(db: Session, ctx: Optional[SessionContext], req: StudentCreate) -> Tuple[Dict[str, Any], StudentAdded]:
    actor = require_actor(ctx)
    draft = validate_student(req)
    row = repository.insert_student(
        db,
        actor,
        student_name=draft.student_name,
        class_name=draft.class_name,
        total_fees=draft.total_fees,
        parent_name=draft.parent_name,
        parent_contact=draft.parent_contact,
    )
    logger.info("Student %s added to %s by %s", row["id"], row["class_name"], actor.user_id)
    event = StudentAdded(
        student_id=row["id"],
        class_name=row["class_name"],
        total_fees=row["total_fees"],
        created_by=actor.user_id,
    )
    return row, event


def admit_payment(
    db: Session,
    ctx: Optional[SessionContext],
    student_id: str,
    req: PaymentCreate,
    *,
    today: Optional[dt.date] = None,
) -> Tuple[Dict[str, Any], PaymentRecorded]:
    """
    Balance is read fresh, not from the query cache. The read and the insert
    are separate statements, so two concurrent payments can both pass the check.
    """
    actor = require_actor(ctx)
    draft = validate_payment(req, today=today)

    student = repository.get_student_with_payments(db, actor, student_id)
    if student is None:
        raise StudentNotFound("Student not found")
    check_within_balance(draft.amount, ledger.balance(student["total_fees"], student["payments"]))

    row = repository.insert_payment(
        db,
        actor,
        student_id=student_id,
        amount=draft.amount,
        payment_date=draft.payment_date,
        payment_method=draft.payment_method,
        notes=draft.notes,
    )
    logger.info("Payment %s of %s recorded for student %s by %s", row["id"], row["amount"], student_id, actor.user_id)
    event = PaymentRecorded(
        payment_id=row["id"],
        student_id=student_id,
        amount=row["amount"],
        payment_date=row["payment_date"],
        created_by=actor.user_id,
    )
    return row, event
