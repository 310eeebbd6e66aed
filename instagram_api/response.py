import json
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from .errors import ErrorKind, InstagramError

# Distinguishes a missing "data" key (or JSON null) from a legitimate falsy payload.
ABSENT = object()


@dataclass(frozen=True)
class Meta:
    code: int
    error_type: Optional[str] = None
    error_message: Optional[str] = None


@dataclass(frozen=True)
class Pagination:
    next_url: Optional[str] = None
    next_max_id: Optional[str] = None


@dataclass(frozen=True)
class Envelope:
    """Uniform wrapper around every API response.

    Wire shape::

        {"data": ..., "meta": {"code": 200, "error_type": ..., "error_message": ...},
         "pagination": {"next_url": ..., "next_max_id": ...}}
    """

    meta: Meta
    data: Any = ABSENT
    pagination: Optional[Pagination] = None

    @property
    def has_data(self) -> bool:
        return self.data is not ABSENT


def _decoding_error(detail: str) -> InstagramError:
    return InstagramError(ErrorKind.DECODING, detail)


def _optional_str(obj: Dict[str, Any], key: str) -> Optional[str]:
    value = obj.get(key)
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        raise _decoding_error(f"Field '{key}' must be a string, got {type(value).__name__}")
    return str(value)


def decode_envelope(body: Union[bytes, str]) -> Envelope:
    """Parse a response body into an Envelope or raise a DECODING error."""

    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise _decoding_error(f"Response was not valid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise _decoding_error(f"Response was not an object: {type(payload).__name__}")

    meta_obj = payload.get("meta")
    if not isinstance(meta_obj, dict):
        raise _decoding_error("Response is missing the 'meta' object")

    code = meta_obj.get("code")
    if isinstance(code, bool) or not isinstance(code, int):
        raise _decoding_error(f"meta.code must be an integer, got {code!r}")

    meta = Meta(
        code=code,
        error_type=_optional_str(meta_obj, "error_type"),
        error_message=_optional_str(meta_obj, "error_message"),
    )

    pagination = None
    pagination_obj = payload.get("pagination")
    if isinstance(pagination_obj, dict):
        pagination = Pagination(
            next_url=_optional_str(pagination_obj, "next_url"),
            next_max_id=_optional_str(pagination_obj, "next_max_id"),
        )
    elif pagination_obj is not None:
        raise _decoding_error("'pagination' must be an object")

    data = payload.get("data")
    return Envelope(meta=meta, data=ABSENT if data is None else data, pagination=pagination)
