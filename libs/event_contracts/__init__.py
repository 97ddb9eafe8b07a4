"""Event contracts (Pydantic models) for ledger mutations and auth-state changes."""

__all__ = [
    "ledger_v1",
    "auth_v1",
]
