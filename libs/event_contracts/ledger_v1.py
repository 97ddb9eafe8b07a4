from decimal import Decimal

from pydantic import BaseModel, Field
import uuid, datetime as dt


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


#student_added
class StudentAdded(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str = "student_added"
    occurred_at: str = Field(default_factory=_now)
    student_id: str
    class_name: str
    total_fees: Decimal
    created_by: str

#payment_recorded
class PaymentRecorded(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str = "payment_recorded"
    occurred_at: str = Field(default_factory=_now)
    payment_id: str
    student_id: str
    amount: Decimal
    payment_date: dt.date
    created_by: str
