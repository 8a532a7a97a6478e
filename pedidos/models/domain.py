from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Role = Literal["internal", "client"]

UNKNOWN_SUBJECT = "unknown"


@dataclass(frozen=True)
class Identity:
    """Verified caller. Only verifiers construct these."""

    subject_id: str
    role: Role
    expires_at: datetime
    label: str | None = None


@dataclass(frozen=True)
class MetricRecord:
    """One observation of a single request.

    `status_code` is None when the connection closed before a status was sent.
    """

    subject_id: str
    method: str
    path: str
    status_code: int | None
    elapsed_ms: int
    captured_at: datetime
    client_ip: str | None = None
    user_agent: str | None = None
