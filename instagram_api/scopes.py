from enum import Enum
from typing import Iterable, List


class Scope(str, Enum):
    """Login permissions supported by the Instagram API."""

    BASIC = "basic"
    PUBLIC_CONTENT = "public_content"
    FOLLOWER_LIST = "follower_list"
    COMMENTS = "comments"
    RELATIONSHIPS = "relationships"
    LIKES = "likes"

    @classmethod
    def all(cls) -> List["Scope"]:
        return list(cls)


def normalize_scopes(scopes: Iterable) -> List[Scope]:
    """Coerce raw values to Scope members, dropping repeats but keeping order."""

    out: List[Scope] = []
    for s in scopes or []:
        scope = s if isinstance(s, Scope) else Scope(str(s).strip())
        if scope not in out:
            out.append(scope)
    return out


def join_scopes(scopes: Iterable) -> str:
    return "+".join(s.value for s in normalize_scopes(scopes))
