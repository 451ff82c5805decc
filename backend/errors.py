"""
Error taxonomy for the store API.

Each error knows the HTTP status it maps to; main.py renders them all
as ``{"error": message}``.
"""
from dataclasses import dataclass


@dataclass(eq=False)
class StoreError(Exception):
    message: str
    status_code: int = 500

    def __str__(self):
        return self.message

    def to_dict(self):
        return {"error": self.message}


class ValidationError(StoreError):
    def __init__(self, message: str):
        super().__init__(message, 400)


class NotFoundError(StoreError):
    def __init__(self, message: str):
        super().__init__(message, 404)


class UpstreamError(StoreError):
    """Ledger RPC or mail transport failed."""

    def __init__(self, message: str):
        super().__init__(message, 500)


class PersistenceError(StoreError):
    """MongoDB unavailable or a write failed."""

    def __init__(self, message: str):
        super().__init__(message, 500)
