from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


# ---- requests ----

class StudentCreate(BaseModel):
    student_name: str
    class_name: str
    total_fees: Decimal
    parent_name: Optional[str] = None
    parent_contact: Optional[str] = None


class PaymentCreate(BaseModel):
    amount: Decimal
    payment_date: Optional[str] = Field(default=None, description="ISO date; defaults to today")
    payment_method: Optional[str] = None
    notes: Optional[str] = None


# ---- responses ----

class StudentOut(BaseModel):
    id: str
    student_name: str
    class_name: str
    total_fees: float
    parent_name: Optional[str] = None
    parent_contact: Optional[str] = None
    status: str
    created_by: Optional[str] = None
    created_at: dt.datetime


class StudentBalanceOut(StudentOut):
    total_paid: float
    balance: float
    balance_status: str


class PaymentOut(BaseModel):
    id: str
    student_id: str
    amount: float
    payment_date: dt.date
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[str] = None
    created_at: dt.datetime


class StudentDetailsOut(StudentBalanceOut):
    payments: List[PaymentOut]


class DashboardStatsOut(BaseModel):
    total_students: int
    active_students: int
    total_fees: float
    total_paid: float
    total_pending: float
    pending_students: int


class ClassSummaryOut(BaseModel):
    class_name: str
    student_count: int
    total_fees: float
    total_paid: float
    balance: float
    collection_percent: float
    display_percent: float


class DashboardOut(BaseModel):
    user_id: str
    stats: DashboardStatsOut
    class_summary: List[ClassSummaryOut]


class SessionOut(BaseModel):
    user_id: str
    signed_in: bool
