from __future__ import annotations


class Unauthenticated(Exception):
    """Credential missing, malformed, expired, or rejected by its verifier."""

    def __init__(self, detail: str = "Not authenticated") -> None:
        super().__init__(detail)
        self.detail = detail


class StoreUnavailable(Exception):
    """The metrics store could not be reached or rejected a write."""
