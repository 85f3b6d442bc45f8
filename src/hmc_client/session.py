"""Session state shared by every request of one client."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class Session:
    """Logon result returned by ``POST /api/sessions``."""

    token: str = ""
    notification_topic: str = ""
    job_notification_topic: str = ""
    api_major_version: int | None = None
    api_minor_version: int | None = None
    password_expires: int | None = None
    credential: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> Session:
        return cls(
            token=payload.get("api-session") or "",
            notification_topic=payload.get("notification-topic") or "",
            job_notification_topic=payload.get("job-notification-topic") or "",
            api_major_version=payload.get("api-major-version"),
            api_minor_version=payload.get("api-minor-version"),
            password_expires=payload.get("password-expires"),
            credential=payload.get("session-credential"),
        )


class SessionStore:
    """Hold the current `Session` behind a lock.

    Readers get an immutable snapshot; writers swap the snapshot as a whole so
    a token and its topics are always observed together.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._session = Session()

    @property
    def current(self) -> Session:
        with self._lock:
            return self._session

    @property
    def token(self) -> str:
        return self.current.token

    def set(self, session: Session) -> None:
        with self._lock:
            self._session = session

    def clear(self) -> None:
        with self._lock:
            self._session = Session()
