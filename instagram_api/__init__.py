"""Instagram API client (OAuth implicit grant).

Login runs through a browsing surface and a redirect interceptor; the token is
kept in the OS keyring; every call goes through one request pipeline that
decodes the {data, meta, pagination} envelope.
"""

from .auth import LoginFlow, RedirectInterceptor, build_authorize_url
from .browser import NavigationDecision, PromptBrowsingSurface
from .client import HTTPMethod, InstagramClient, RequestDescriptor, RequestPipeline
from .config import ClientConfig
from .errors import ErrorKind, InstagramError
from .response import Envelope
from .scopes import Scope
from .token_store import CredentialStore

__all__ = [
    "ClientConfig",
    "CredentialStore",
    "Envelope",
    "ErrorKind",
    "HTTPMethod",
    "InstagramClient",
    "InstagramError",
    "LoginFlow",
    "NavigationDecision",
    "PromptBrowsingSurface",
    "RedirectInterceptor",
    "RequestDescriptor",
    "RequestPipeline",
    "Scope",
    "build_authorize_url",
]
