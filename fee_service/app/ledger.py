"""
Balance and collection arithmetic over rows already fetched from the database.

Nothing here is stored: every figure is recomputed from the full payment set
on each read. All functions are pure.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping

ZERO = Decimal("0")
CENT = Decimal("0.01")
HUNDRED = Decimal("100")

PAID = "Paid"
ALMOST_PAID = "Almost Paid"
PENDING = "Pending"


def to_money(value: Any) -> Decimal:
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        # via str so 0.1 stays 0.1
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def total_paid(payments: Iterable[Mapping[str, Any]]) -> Decimal:
    return sum((to_money(p["amount"]) for p in payments), ZERO)


def balance(total_fees: Any, payments: Iterable[Mapping[str, Any]]) -> Decimal:
    """Outstanding amount; negative when overpaid."""
    return to_money(total_fees) - total_paid(payments)


def balance_status(bal: Decimal, almost_paid_threshold: Decimal = HUNDRED) -> str:
    if bal <= ZERO:
        return PAID
    if bal < almost_paid_threshold:
        return ALMOST_PAID
    return PENDING


def collection_percent(paid: Decimal, fees: Decimal) -> Decimal:
    if fees == ZERO:
        return ZERO
    return paid / fees * HUNDRED


@dataclass
class ClassSummary:
    class_name: str
    student_count: int = 0
    total_fees: Decimal = ZERO
    total_paid: Decimal = ZERO

    @property
    def balance(self) -> Decimal:
        return self.total_fees - self.total_paid

    @property
    def collection_percent(self) -> Decimal:
        return collection_percent(self.total_paid, self.total_fees)

    @property
    def display_percent(self) -> Decimal:
        # progress bars stop at 100; the underlying figure does not
        return min(self.collection_percent, HUNDRED)


def class_summary(students: Iterable[Mapping[str, Any]]) -> List[ClassSummary]:
    """
    Group students by class label.

    Each student mapping needs `class_name`, `total_fees` and `payments`
    (a list of mappings with `amount`). Callers pass active students only.
    Output is ordered by class label as plain strings, so "Grade 10" sorts
    before "Grade 2".
    """
    summaries: Dict[str, ClassSummary] = {}
    for student in students:
        name = student["class_name"]
        summary = summaries.get(name)
        if summary is None:
            summary = summaries[name] = ClassSummary(class_name=name)
        summary.student_count += 1
        summary.total_fees += to_money(student["total_fees"])
        summary.total_paid += total_paid(student.get("payments") or [])
    return [summaries[k] for k in sorted(summaries)]


@dataclass(frozen=True)
class DashboardStats:
    total_students: int
    active_students: int
    total_fees: Decimal
    total_paid: Decimal
    total_pending: Decimal
    pending_students: int


def dashboard_stats(students: Iterable[Mapping[str, Any]], payments: Iterable[Mapping[str, Any]]) -> DashboardStats:
    """Headline figures across every student regardless of status."""
    students = list(students)
    paid_by_student: Dict[str, Decimal] = {}
    all_paid = ZERO
    for p in payments:
        amount = to_money(p["amount"])
        all_paid += amount
        paid_by_student[p["student_id"]] = paid_by_student.get(p["student_id"], ZERO) + amount

    total_fees = sum((to_money(s["total_fees"]) for s in students), ZERO)
    pending = sum(
        1 for s in students
        if paid_by_student.get(s["id"], ZERO) < to_money(s["total_fees"])
    )
    return DashboardStats(
        total_students=len(students),
        active_students=sum(1 for s in students if s.get("status") == "active"),
        total_fees=total_fees,
        total_paid=all_paid,
        total_pending=total_fees - all_paid,
        pending_students=pending,
    )
