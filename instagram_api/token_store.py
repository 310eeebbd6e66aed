import logging
from typing import Any, Dict, Optional

import keyring
from keyring.backend import KeyringBackend
from keyring.errors import KeyringError, PasswordDeleteError

from .config import DEFAULT_KEYRING_SERVICE

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "accessToken"


def _error_code(exc: BaseException) -> Optional[int]:
    """Best-effort platform status code carried by a keyring failure."""

    for candidate in (exc, exc.__cause__, exc.__context__):
        if candidate is None:
            continue
        for attr in ("errno", "winerror", "code"):
            value = getattr(candidate, attr, None)
            if isinstance(value, int):
                return value
    return None


class CredentialStore:
    """Holds the single bearer token in the OS secure store (via keyring).

    Nothing is cached in memory: every ``retrieve`` goes to the backend, so
    several call sites never observe a stale token.
    """

    def __init__(
        self,
        *,
        service: str = DEFAULT_KEYRING_SERVICE,
        backend: Optional[KeyringBackend] = None,
    ):
        self.service = service
        self.backend = backend
        self.last_error_code: Optional[int] = None

    @staticmethod
    def from_config(config: Dict[str, Any]) -> "CredentialStore":
        service = str((config or {}).get("instagram_keyring_service") or "").strip()
        return CredentialStore(service=service or DEFAULT_KEYRING_SERVICE)

    def _keyring(self):
        return self.backend if self.backend is not None else keyring

    def store(self, token: str) -> bool:
        """Persist ``token``, replacing any previous one. False on storage failure."""

        try:
            self._keyring().set_password(self.service, ACCESS_TOKEN_KEY, str(token))
        except (KeyringError, OSError) as e:
            self.last_error_code = _error_code(e)
            logger.warning("Could not store access token in %s: %s", self.service, e)
            return False

        self.last_error_code = None
        logger.debug("Access token stored in %s", self.service)
        return True

    def retrieve(self) -> Optional[str]:
        try:
            token = self._keyring().get_password(self.service, ACCESS_TOKEN_KEY)
        except (KeyringError, OSError) as e:
            logger.debug("Access token unavailable from %s: %s", self.service, e)
            return None
        return token or None

    def delete(self) -> bool:
        """Remove the stored token. Deleting when nothing is stored succeeds.

        Backends raise PasswordDeleteError both for a missing entry and for a
        refused delete, so the entry is read back (errors not swallowed) to
        tell them apart.
        """

        try:
            self._keyring().delete_password(self.service, ACCESS_TOKEN_KEY)
        except PasswordDeleteError as e:
            try:
                still_stored = self._keyring().get_password(self.service, ACCESS_TOKEN_KEY)
            except (KeyringError, OSError) as read_error:
                self.last_error_code = _error_code(read_error) or _error_code(e)
                logger.warning("Could not delete access token from %s: %s", self.service, read_error)
                return False

            if still_stored:
                self.last_error_code = _error_code(e)
                logger.warning("Could not delete access token from %s: %s", self.service, e)
                return False

            self.last_error_code = None
            return True
        except (KeyringError, OSError) as e:
            self.last_error_code = _error_code(e)
            logger.warning("Could not delete access token from %s: %s", self.service, e)
            return False

        self.last_error_code = None
        logger.debug("Access token deleted from %s", self.service)
        return True
