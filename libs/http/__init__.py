"""Outbound JSON HTTP client."""

from .client import HttpClient, HttpError, CID_HEADER

__all__ = ["HttpClient", "HttpError", "CID_HEADER"]
