from pydantic import BaseModel, Field
import uuid, datetime as dt


def _now() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat()


#signed_in
class SignedIn(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str = "signed_in"
    occurred_at: str = Field(default_factory=_now)
    user_id: str

#signed_out
class SignedOut(BaseModel):
    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str = "signed_out"
    occurred_at: str = Field(default_factory=_now)
    user_id: str
    reason_code: str | None = None
