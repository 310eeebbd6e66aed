from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure categories reported by the SDK."""

    MISSING_CLIENT_CONFIG = "missingClientConfig"
    CANCELLED = "cancelled"
    INVALID_REQUEST = "invalidRequest"
    DECODING = "decoding"
    KEYCHAIN_ERROR = "keychainError"
    TRANSPORT = "transport"


class InstagramError(Exception):
    """Terminal failure of a login or an API call.

    Callers branch on ``kind``; ``message`` is diagnostic text. ``code`` holds
    the secure-storage status code (keychain errors) or the envelope's
    ``meta.code`` (server errors). ``error_type`` is the server's
    ``meta.error_type`` when one was sent.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        code: Optional[int] = None,
        error_type: Optional[str] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.code = code
        self.error_type = error_type

    def __str__(self) -> str:
        return f"[{self.kind.value}] - {self.message}"

    def __repr__(self) -> str:
        return f"InstagramError(kind={self.kind.value!r}, message={self.message!r}, code={self.code!r})"
