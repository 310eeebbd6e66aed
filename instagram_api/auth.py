import asyncio
import logging
import urllib.parse
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Optional

from .browser import BrowsingSurface, NavigationDecision, PromptBrowsingSurface
from .config import ClientConfig
from .errors import ErrorKind, InstagramError
from .scopes import Scope, join_scopes, normalize_scopes
from .token_store import CredentialStore

logger = logging.getLogger(__name__)

ACCESS_TOKEN_MARKER = "access_token="

DEFAULT_LOGIN_TIMEOUT = 300.0


def build_authorize_url(config: ClientConfig, scopes: Iterable[Scope]) -> Optional[str]:
    """Return the implicit-grant authorize URL, or None when the client is unconfigured.

    Query order is fixed: client_id, redirect_uri, response_type, scope. Scopes
    are joined with a literal ``+``.
    """

    if not config.is_configured:
        return None

    scope_list = normalize_scopes(scopes)
    if not scope_list:
        raise ValueError("At least one scope is required")

    params = [
        ("client_id", config.client_id),
        ("redirect_uri", config.redirect_uri),
        ("response_type", "token"),
    ]
    query = urllib.parse.urlencode(params)
    return f"{config.authorize_url}?{query}&scope={join_scopes(scope_list)}"


def check_instagram_credentials(config: Dict[str, Any]) -> Dict[str, Any]:
    """Validate Instagram OAuth config fields and return a structured status dict."""

    client = ClientConfig.from_config(config)
    scopes = list((config or {}).get("instagram_scopes", []) or [])

    missing = []
    if not client.client_id:
        missing.append("instagram_client_id")
    if not client.redirect_uri:
        missing.append("instagram_redirect_uri")

    if missing:
        message = f"Missing {', '.join(missing)} in config.json."
    else:
        message = "Instagram credentials look OK."

    return {
        "ok": not missing,
        "client_id": client.client_id or "",
        "redirect_uri": client.redirect_uri or "",
        "scopes": scopes,
        "missing": missing,
        "message": message,
    }


def instagram_app_setup_instructions(*, redirect_uri: str = "") -> str:
    """Return user-facing setup instructions for registering an Instagram client."""

    redirect_uri = str(redirect_uri or "").strip() or "<your redirect URI>"
    return (
        "Instagram client setup:\n"
        "1) Go to https://www.instagram.com/developer/clients/manage/\n"
        "2) Register a new client (or select an existing one)\n"
        "3) Under Security, untick 'Disable implicit OAuth'\n"
        f"4) Add this Valid redirect URI: {redirect_uri}\n"
        "5) Copy the Client ID into config.json as instagram_client_id\n"
        "   and the redirect URI as instagram_redirect_uri\n\n"
        "Notes:\n"
        "- Login uses the implicit grant: the token arrives in the redirect URL fragment.\n"
        "- The redirect URI is never loaded; it only has to match the client settings exactly.\n"
    )


def extract_token_from_redirect_url(url: str) -> Optional[str]:
    """Return the bearer token carried in a redirect URL fragment, if any."""

    fragment = urllib.parse.urlsplit(str(url or "").strip()).fragment
    index = fragment.find(ACCESS_TOKEN_MARKER)
    if index < 0:
        return None
    return fragment[index + len(ACCESS_TOKEN_MARKER):] or None


class InterceptorState(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class RedirectInterceptor:
    """Decides on each navigation of the login page and captures the token.

    Pure state machine, no UI dependency. Once RESOLVED or REJECTED every later
    event leaves the state untouched and is answered with CANCEL.
    """

    def __init__(self):
        self.state = InterceptorState.PENDING
        self.token: Optional[str] = None
        self.error: Optional[InstagramError] = None

    @property
    def is_terminal(self) -> bool:
        return self.state is not InterceptorState.PENDING

    def on_navigation_requested(self, url: str) -> NavigationDecision:
        if self.is_terminal:
            return NavigationDecision.CANCEL

        token = extract_token_from_redirect_url(url)
        if token:
            self.token = token
            self.state = InterceptorState.RESOLVED
            logger.debug("Redirect intercepted, access token captured")
            return NavigationDecision.CANCEL

        return NavigationDecision.ALLOW

    def on_response_received(self, status_code: int, url: str = "") -> NavigationDecision:
        if self.is_terminal:
            return NavigationDecision.CANCEL

        if int(status_code) == 400:
            message = "Authorization server rejected the request (HTTP 400)"
            self._reject(ErrorKind.INVALID_REQUEST, f"{message}: {url}" if url else message)
            return NavigationDecision.CANCEL

        return NavigationDecision.ALLOW

    def abandon(self, cause: Optional[BaseException] = None) -> None:
        """The surface went away before a terminal state was reached.

        ``cause`` is the surface failure, if it crashed; it is chained onto the
        CANCELLED error so callers can see what happened.
        """

        if self.is_terminal:
            return
        if cause is None:
            self._reject(ErrorKind.CANCELLED, "Login was dismissed before completing.")
        else:
            self._reject(ErrorKind.CANCELLED, f"Login surface failed before completing: {cause!r}", cause)

    def _reject(self, kind: ErrorKind, message: str, cause: Optional[BaseException] = None) -> None:
        self.error = InstagramError(kind, message)
        self.error.__cause__ = cause
        self.state = InterceptorState.REJECTED
        logger.debug("Login rejected: %s", self.error)


class _LoginSession:
    """Observer wiring one surface to one interceptor and one outcome future."""

    def __init__(
        self,
        interceptor: RedirectInterceptor,
        surface: BrowsingSurface,
        credential_store: CredentialStore,
        outcome: "asyncio.Future[None]",
    ):
        self.interceptor: Optional[RedirectInterceptor] = interceptor
        self.surface: Optional[BrowsingSurface] = surface
        self.credential_store = credential_store
        self.outcome = outcome

    def on_navigation_requested(self, url: str) -> NavigationDecision:
        if self.interceptor is None:
            return NavigationDecision.CANCEL
        decision = self.interceptor.on_navigation_requested(url)
        self._settle()
        return decision

    def on_response_received(self, status_code: int, url: str = "") -> NavigationDecision:
        if self.interceptor is None:
            return NavigationDecision.CANCEL
        decision = self.interceptor.on_response_received(status_code, url)
        self._settle()
        return decision

    def on_dismissed(self, error: Optional[BaseException] = None) -> None:
        # The host already tore the surface down.
        self.surface = None
        if self.interceptor is not None:
            self.interceptor.abandon(error)
        self._settle()

    def close(self) -> None:
        self.interceptor = None
        surface, self.surface = self.surface, None
        if surface is not None:
            surface.dismiss()

    def _settle(self) -> None:
        interceptor = self.interceptor
        if interceptor is None or not interceptor.is_terminal:
            return

        if not self.outcome.done():
            if interceptor.state is InterceptorState.RESOLVED:
                if self.credential_store.store(interceptor.token or ""):
                    self.outcome.set_result(None)
                else:
                    self.outcome.set_exception(
                        InstagramError(
                            ErrorKind.KEYCHAIN_ERROR,
                            "Error storing access token into secure storage.",
                            code=self.credential_store.last_error_code,
                        )
                    )
            else:
                self.outcome.set_exception(interceptor.error)

        self.close()


class LoginFlow:
    """Runs one implicit-grant login through a browsing surface.

    Surfaces must call observer methods on the event loop thread that awaits
    ``begin``.
    """

    def __init__(
        self,
        credential_store: CredentialStore,
        *,
        surface_factory: Optional[Callable[[], BrowsingSurface]] = None,
        timeout: float = DEFAULT_LOGIN_TIMEOUT,
    ):
        self.credential_store = credential_store
        self.surface_factory = surface_factory or PromptBrowsingSurface
        self.timeout = float(timeout)

    async def begin(self, config: ClientConfig, scopes: Iterable[Scope]) -> None:
        url = build_authorize_url(config, scopes)
        if url is None:
            raise InstagramError(
                ErrorKind.MISSING_CLIENT_CONFIG,
                "Instagram client id or redirect URI is not configured.",
            )

        loop = asyncio.get_running_loop()
        outcome: "asyncio.Future[None]" = loop.create_future()
        surface = self.surface_factory()
        session = _LoginSession(RedirectInterceptor(), surface, self.credential_store, outcome)

        logger.debug("Presenting authorize page for client %s", config.client_id)
        surface.present(url, session)

        try:
            await asyncio.wait_for(outcome, timeout=self.timeout)
        except asyncio.TimeoutError:
            session.close()
            raise InstagramError(
                ErrorKind.CANCELLED,
                f"Login did not complete within {self.timeout:g} seconds.",
            ) from None
        except asyncio.CancelledError:
            session.close()
            raise

        logger.debug("Login completed")
