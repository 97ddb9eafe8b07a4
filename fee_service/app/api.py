from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from fee_service.app import ledger, repository
from fee_service.app.admission import admit_payment, admit_student
from fee_service.app.cache import (
    CLASS_SUMMARY,
    DASHBOARD_STATS,
    STUDENT,
    STUDENT_DETAILS,
    STUDENTS,
    QueryCache,
)
from fee_service.app.db import get_db, session_scope
from fee_service.app.errors import StudentNotFound
from fee_service.app.schemas import (
    ClassSummaryOut,
    DashboardOut,
    DashboardStatsOut,
    PaymentCreate,
    PaymentOut,
    SessionOut,
    StudentBalanceOut,
    StudentCreate,
    StudentDetailsOut,
    StudentOut,
)
from fee_service.app.session import (
    SessionContext,
    optional_session,
    require_session,
    sign_in,
    sign_out,
)
from fee_service.app.settings import settings


router = APIRouter()


def get_query_cache(request: Request) -> QueryCache:
    return request.app.state.query_cache


# ---- shaping ----

def _with_balance(student: Dict[str, Any]) -> Dict[str, Any]:
    paid = ledger.total_paid(student["payments"])
    bal = ledger.to_money(student["total_fees"]) - paid
    return {
        **student,
        "total_paid": paid,
        "balance": bal,
        "balance_status": ledger.balance_status(bal, settings.ALMOST_PAID_THRESHOLD),
    }


def _stats_out(stats: ledger.DashboardStats) -> Dict[str, Any]:
    return DashboardStatsOut(
        total_students=stats.total_students,
        active_students=stats.active_students,
        total_fees=float(stats.total_fees),
        total_paid=float(stats.total_paid),
        total_pending=float(stats.total_pending),
        pending_students=stats.pending_students,
    ).model_dump(mode="json")


def _summary_out(rows: List[ledger.ClassSummary]) -> List[Dict[str, Any]]:
    return [
        ClassSummaryOut(
            class_name=s.class_name,
            student_count=s.student_count,
            total_fees=float(s.total_fees),
            total_paid=float(s.total_paid),
            balance=float(s.balance),
            collection_percent=float(s.collection_percent),
            display_percent=float(s.display_percent),
        ).model_dump(mode="json")
        for s in rows
    ]


def _money_floats(row: Dict[str, Any], *keys: str) -> Dict[str, Any]:
    return {**row, **{k: float(row[k]) for k in keys}}


# ---- loaders (always recompute from fresh rows) ----

def load_students(db: Session, ctx: SessionContext, search: Optional[str]) -> List[Dict[str, Any]]:
    out = []
    for s in repository.list_active_students(db, ctx, search=search):
        s = _money_floats(_with_balance(s), "total_fees", "total_paid", "balance")
        out.append(StudentBalanceOut.model_validate(s).model_dump(mode="json"))
    return out


def load_student(db: Session, ctx: SessionContext, student_id: str) -> Dict[str, Any]:
    student = repository.get_student_with_payments(db, ctx, student_id)
    if student is None:
        raise StudentNotFound("Student not found")
    s = _money_floats(_with_balance(student), "total_fees", "total_paid", "balance")
    return StudentBalanceOut.model_validate(s).model_dump(mode="json")


def load_student_details(db: Session, ctx: SessionContext, student_id: str) -> Dict[str, Any]:
    student = repository.get_student_with_payments(db, ctx, student_id)
    if student is None:
        raise StudentNotFound("Student not found")
    s = _money_floats(_with_balance(student), "total_fees", "total_paid", "balance")
    s["payments"] = [_money_floats(p, "amount") for p in student["payments"]]
    return StudentDetailsOut.model_validate(s).model_dump(mode="json")


def load_dashboard_stats(db: Session, ctx: SessionContext) -> Dict[str, Any]:
    stats = ledger.dashboard_stats(
        repository.list_all_students(db, ctx),
        repository.list_all_payments(db, ctx),
    )
    return _stats_out(stats)


def load_class_summary(db: Session, ctx: SessionContext) -> List[Dict[str, Any]]:
    return _summary_out(ledger.class_summary(repository.list_active_students(db, ctx)))


# ---- auth ----

@router.post("/auth/session", response_model=SessionOut)
def start_session(response: Response, ctx: SessionContext = Depends(require_session)) -> SessionOut:
    """Exchange a platform access token for the dashboard cookie."""
    response.set_cookie(
        settings.AUTH_COOKIE_NAME,
        ctx.access_token,
        httponly=True,
        samesite="lax",
    )
    sign_in(ctx)
    return SessionOut(user_id=ctx.user_id, signed_in=True)


@router.post("/auth/signout", response_model=SessionOut)
def end_session(response: Response, ctx: SessionContext = Depends(require_session)) -> SessionOut:
    sign_out(ctx)
    response.delete_cookie(settings.AUTH_COOKIE_NAME)
    return SessionOut(user_id=ctx.user_id, signed_in=False)


@router.get("/dashboard", response_model=DashboardOut)
def dashboard(
    ctx: Optional[SessionContext] = Depends(optional_session),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    if ctx is None:
        return RedirectResponse(settings.AUTH_REDIRECT_PATH, status_code=status.HTTP_303_SEE_OTHER)
    return {
        "user_id": ctx.user_id,
        "stats": cache.fetch((DASHBOARD_STATS,), lambda: load_dashboard_stats(db, ctx)),
        "class_summary": cache.fetch((CLASS_SUMMARY,), lambda: load_class_summary(db, ctx)),
    }


# ---- reads ----

@router.get("/api/students", response_model=List[StudentBalanceOut])
def list_students(
    search: str = "",
    ctx: SessionContext = Depends(require_session),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    search = search.strip()
    return cache.fetch((STUDENTS, search), lambda: load_students(db, ctx, search or None))


@router.get("/api/students/{student_id}", response_model=StudentBalanceOut)
def get_student(
    student_id: str,
    ctx: SessionContext = Depends(require_session),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    return cache.fetch((STUDENT, student_id), lambda: load_student(db, ctx, student_id))


@router.get("/api/students/{student_id}/details", response_model=StudentDetailsOut)
def get_student_details(
    student_id: str,
    ctx: SessionContext = Depends(require_session),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    return cache.fetch((STUDENT_DETAILS, student_id), lambda: load_student_details(db, ctx, student_id))


@router.get("/api/dashboard/stats", response_model=DashboardStatsOut)
def get_dashboard_stats(
    ctx: SessionContext = Depends(require_session),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    return cache.fetch((DASHBOARD_STATS,), lambda: load_dashboard_stats(db, ctx))


@router.get("/api/dashboard/class-summary", response_model=List[ClassSummaryOut])
def get_class_summary(
    ctx: SessionContext = Depends(require_session),
    db: Session = Depends(get_db),
    cache: QueryCache = Depends(get_query_cache),
):
    return cache.fetch((CLASS_SUMMARY,), lambda: load_class_summary(db, ctx))


# ---- writes ----

@router.post("/api/students", response_model=StudentOut, status_code=status.HTTP_201_CREATED)
def add_student(
    body: StudentCreate,
    ctx: SessionContext = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    with session_scope() as db:
        row, event = admit_student(db, ctx, body)
    cache.apply(event)
    return _money_floats(row, "total_fees")


@router.post("/api/students/{student_id}/payments", response_model=PaymentOut, status_code=status.HTTP_201_CREATED)
def add_payment(
    student_id: str,
    body: PaymentCreate,
    ctx: SessionContext = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    with session_scope() as db:
        row, event = admit_payment(db, ctx, student_id, body)
    cache.apply(event)
    return _money_floats(row, "amount")


@router.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}
