import asyncio
import logging
import urllib.parse
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import httpx

from .auth import DEFAULT_LOGIN_TIMEOUT, LoginFlow
from .browser import BrowsingSurface
from .config import ClientConfig
from .errors import ErrorKind, InstagramError
from .response import Envelope, decode_envelope
from .scopes import Scope
from .token_store import CredentialStore

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 30.0


class HTTPMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    DELETE = "DELETE"


@dataclass(frozen=True)
class RequestDescriptor:
    """One API call: path under /v1, method and the caller's parameters.

    Keys are present only for values the caller actually supplied. The access
    token is never part of ``parameters``; the pipeline adds it.
    """

    path: str
    method: HTTPMethod = HTTPMethod.GET
    parameters: Dict[str, str] = field(default_factory=dict)
    expects_data: bool = True

    def __post_init__(self):
        if "access_token" in self.parameters:
            raise ValueError("access_token is injected by the request pipeline, not passed as a parameter")

    @staticmethod
    def build(
        path: str,
        method: HTTPMethod = HTTPMethod.GET,
        *,
        expects_data: bool = True,
        **params: Any,
    ) -> "RequestDescriptor":
        """Create a descriptor, dropping parameters whose value is None."""

        parameters = {k: str(v) for k, v in params.items() if v is not None}
        return RequestDescriptor(path=path, method=HTTPMethod(method), parameters=parameters, expects_data=expects_data)

    def encode_parameters(self) -> str:
        return urllib.parse.urlencode(list(self.parameters.items()))


def _segment(value: Any) -> str:
    return urllib.parse.quote(str(value), safe="")


class RequestPipeline:
    """Builds authenticated requests, dispatches them and classifies the outcome."""

    def __init__(
        self,
        credential_store: CredentialStore,
        *,
        base_url: str = ClientConfig().base_url,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credential_store = credential_store
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)
        self.transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=False,
                transport=self.transport,
                headers={"Accept": "application/json"},
            )
        return self._http

    async def aclose(self) -> None:
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    def build_request(self, descriptor: RequestDescriptor) -> httpx.Request:
        """Return the wire request for ``descriptor`` with the current token injected.

        GET/DELETE carry every parameter in the query string. POST carries the
        caller's parameters form-encoded in the body; the token stays in the query.
        """

        token = self.credential_store.retrieve() or ""
        query = [("access_token", token)]
        data = None

        if descriptor.method is HTTPMethod.POST:
            data = dict(descriptor.parameters) or None
        else:
            query.extend(descriptor.parameters.items())

        return self._client().build_request(
            descriptor.method.value,
            f"{self.base_url}{descriptor.path}",
            params=query,
            data=data,
        )

    async def call_envelope(self, descriptor: RequestDescriptor) -> Envelope:
        request = self.build_request(descriptor)

        try:
            response = await self._client().send(request)
        except httpx.DecodingError as e:
            raise InstagramError(
                ErrorKind.DECODING,
                f"{descriptor.method.value} {descriptor.path} body could not be decoded: {e!r}",
            ) from e
        except httpx.RequestError as e:
            raise InstagramError(
                ErrorKind.TRANSPORT,
                f"{descriptor.method.value} {descriptor.path} failed: {e!r}",
            ) from e

        logger.debug("%s %s -> HTTP %s", descriptor.method.value, descriptor.path, response.status_code)

        # Decode on a worker thread; the await resumes on the caller's loop.
        loop = asyncio.get_running_loop()
        envelope = await loop.run_in_executor(None, decode_envelope, response.content)

        if envelope.meta.error_message is not None:
            raise InstagramError(
                ErrorKind.INVALID_REQUEST,
                envelope.meta.error_message,
                code=envelope.meta.code,
                error_type=envelope.meta.error_type,
            )

        if not envelope.has_data and descriptor.expects_data:
            raise InstagramError(
                ErrorKind.DECODING,
                f"Response to {descriptor.path} carried neither data nor an error message",
            )

        return envelope

    async def call(self, descriptor: RequestDescriptor) -> Any:
        """Return the envelope's ``data`` (None for calls that expect no data)."""

        envelope = await self.call_envelope(descriptor)
        return envelope.data if envelope.has_data else None


class InstagramClient:
    """Instagram API client: login lifecycle plus the generic ``call`` primitive.

    The convenience endpoints below are thin parameter translations over
    ``call``; they return the decoded ``data`` as plain dicts/lists.
    """

    def __init__(
        self,
        config: Union[ClientConfig, Dict[str, Any], None] = None,
        *,
        credential_store: Optional[CredentialStore] = None,
        surface_factory: Optional[Callable[[], BrowsingSurface]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        request_timeout: Optional[float] = None,
        login_timeout: Optional[float] = None,
    ):
        raw: Dict[str, Any] = config if isinstance(config, dict) else {}
        self.client_config = config if isinstance(config, ClientConfig) else ClientConfig.from_config(raw)
        self.credential_store = credential_store or CredentialStore.from_config(raw)

        if request_timeout is None:
            request_timeout = float(raw.get("instagram_request_timeout", DEFAULT_REQUEST_TIMEOUT))
        if login_timeout is None:
            login_timeout = float(raw.get("instagram_login_timeout", DEFAULT_LOGIN_TIMEOUT))

        self.login_flow = LoginFlow(
            self.credential_store,
            surface_factory=surface_factory,
            timeout=login_timeout,
        )
        self.pipeline = RequestPipeline(
            self.credential_store,
            base_url=self.client_config.base_url,
            timeout=request_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "InstagramClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.pipeline.aclose()

    # -----------------
    # Authentication
    # -----------------

    async def login(self, scopes: Optional[Iterable[Scope]] = None) -> None:
        """Present the login page and store the token it yields.

        Raises InstagramError: MISSING_CLIENT_CONFIG, CANCELLED, INVALID_REQUEST
        or KEYCHAIN_ERROR.
        """

        scope_list = list(scopes) if scopes is not None else [Scope.BASIC]
        await self.login_flow.begin(self.client_config, scope_list or [Scope.BASIC])

    def logout(self) -> bool:
        return self.credential_store.delete()

    def is_authenticated(self) -> bool:
        return self.credential_store.retrieve() is not None

    # -----------------
    # Requests
    # -----------------

    async def call(self, descriptor: RequestDescriptor) -> Any:
        return await self.pipeline.call(descriptor)

    async def call_envelope(self, descriptor: RequestDescriptor) -> Envelope:
        """Like ``call`` but returns the whole envelope (pagination included)."""
        return await self.pipeline.call_envelope(descriptor)

    async def _get(self, path: str, **params: Any) -> Any:
        return await self.call(RequestDescriptor.build(path, **params))

    # -----------------
    # Users
    # -----------------

    async def user(self, user_id: str = "self") -> Dict[str, Any]:
        return await self._get(f"/users/{_segment(user_id)}")

    async def recent_media(
        self,
        user_id: str = "self",
        *,
        max_id: Optional[str] = None,
        min_id: Optional[str] = None,
        count: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return await self._get(f"/users/{_segment(user_id)}/media/recent", max_id=max_id, min_id=min_id, count=count)

    async def user_liked_media(self, *, max_like_id: Optional[str] = None, count: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self._get("/users/self/media/liked", max_like_id=max_like_id, count=count)

    async def search_users(self, query: str, *, count: Optional[int] = None) -> List[Dict[str, Any]]:
        return await self._get("/users/search", q=query, count=count)

    # -----------------
    # Relationships
    # -----------------

    async def user_follows(self) -> List[Dict[str, Any]]:
        return await self._get("/users/self/follows")

    async def user_followers(self) -> List[Dict[str, Any]]:
        return await self._get("/users/self/followed-by")

    async def user_requested_by(self) -> List[Dict[str, Any]]:
        return await self._get("/users/self/requested-by")

    async def user_relationship(self, user_id: str) -> Dict[str, Any]:
        return await self._get(f"/users/{_segment(user_id)}/relationship")

    async def _modify_relationship(self, user_id: str, action: str) -> Dict[str, Any]:
        return await self.call(
            RequestDescriptor.build(f"/users/{_segment(user_id)}/relationship", HTTPMethod.POST, action=action)
        )

    async def follow(self, user_id: str) -> Dict[str, Any]:
        return await self._modify_relationship(user_id, "follow")

    async def unfollow(self, user_id: str) -> Dict[str, Any]:
        return await self._modify_relationship(user_id, "unfollow")

    async def approve_request(self, user_id: str) -> Dict[str, Any]:
        return await self._modify_relationship(user_id, "approve")

    async def ignore_request(self, user_id: str) -> Dict[str, Any]:
        return await self._modify_relationship(user_id, "ignore")

    # -----------------
    # Media
    # -----------------

    async def media(self, media_id: str) -> Dict[str, Any]:
        return await self._get(f"/media/{_segment(media_id)}")

    async def media_by_shortcode(self, shortcode: str) -> Dict[str, Any]:
        # The shortcode is the tail of a shortlink, e.g. http://instagram.com/p/tsxp1hhQTG/
        return await self._get(f"/media/shortcode/{_segment(shortcode)}")

    async def search_media(
        self,
        *,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        distance: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return await self._get("/media/search", lat=lat, lng=lng, distance=distance)

    # -----------------
    # Comments
    # -----------------

    async def comments(self, media_id: str) -> List[Dict[str, Any]]:
        return await self._get(f"/media/{_segment(media_id)}/comments")

    async def create_comment(self, media_id: str, text: str) -> Dict[str, Any]:
        return await self.call(
            RequestDescriptor.build(f"/media/{_segment(media_id)}/comments", HTTPMethod.POST, text=text)
        )

    async def delete_comment(self, comment_id: str, media_id: str) -> None:
        await self.call(
            RequestDescriptor.build(
                f"/media/{_segment(media_id)}/comments/{_segment(comment_id)}",
                HTTPMethod.DELETE,
                expects_data=False,
            )
        )

    # -----------------
    # Likes
    # -----------------

    async def likes(self, media_id: str) -> List[Dict[str, Any]]:
        return await self._get(f"/media/{_segment(media_id)}/likes")

    async def like(self, media_id: str) -> None:
        await self.call(RequestDescriptor.build(f"/media/{_segment(media_id)}/likes", HTTPMethod.POST, expects_data=False))

    async def unlike(self, media_id: str) -> None:
        await self.call(RequestDescriptor.build(f"/media/{_segment(media_id)}/likes", HTTPMethod.DELETE, expects_data=False))

    # -----------------
    # Tags
    # -----------------

    async def tag(self, name: str) -> Dict[str, Any]:
        return await self._get(f"/tags/{_segment(name)}")

    async def recent_media_with_tag(
        self,
        name: str,
        *,
        max_tag_id: Optional[str] = None,
        min_tag_id: Optional[str] = None,
        count: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        return await self._get(
            f"/tags/{_segment(name)}/media/recent",
            max_tag_id=max_tag_id,
            min_tag_id=min_tag_id,
            count=count,
        )

    async def search_tags(self, query: str) -> List[Dict[str, Any]]:
        return await self._get("/tags/search", q=query)

    # -----------------
    # Locations
    # -----------------

    async def location(self, location_id: str) -> Dict[str, Any]:
        return await self._get(f"/locations/{_segment(location_id)}")

    async def recent_media_at_location(
        self,
        location_id: str,
        *,
        max_id: Optional[str] = None,
        min_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return await self._get(f"/locations/{_segment(location_id)}/media/recent", max_id=max_id, min_id=min_id)

    async def search_locations(
        self,
        *,
        lat: Optional[float] = None,
        lng: Optional[float] = None,
        distance: Optional[int] = None,
        facebook_places_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return await self._get(
            "/locations/search",
            lat=lat,
            lng=lng,
            distance=distance,
            facebook_places_id=facebook_places_id,
        )
