"""
Value objects for origin items and resolved comment trees.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class Item:
    """A single content node as returned by the origin."""

    id: int
    type: str
    by: Optional[str] = None
    time: int = 0
    title: Optional[str] = None
    text: Optional[str] = None
    url: Optional[str] = None
    score: Optional[int] = None
    descendants: Optional[int] = None
    kids: Tuple[int, ...] = ()
    parts: Tuple[int, ...] = ()
    parent: Optional[int] = None
    deleted: bool = False
    dead: bool = False

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Item":
        """Build an item from the origin's JSON record."""
        return cls(
            id=int(payload["id"]),
            type=payload.get("type") or "story",
            by=payload.get("by"),
            time=int(payload.get("time") or 0),
            title=payload.get("title"),
            text=payload.get("text"),
            url=payload.get("url") or None,
            score=payload.get("score"),
            descendants=payload.get("descendants"),
            kids=tuple(int(kid) for kid in payload.get("kids") or ()),
            parts=tuple(int(part) for part in payload.get("parts") or ()),
            parent=payload.get("parent"),
            deleted=bool(payload.get("deleted", False)),
            dead=bool(payload.get("dead", False)),
        )

    @property
    def is_poll(self) -> bool:
        return self.type == "poll"


@dataclass(frozen=True)
class ResolvedTree:
    """An item together with its resolved comments and poll options.

    ``comments`` keeps the origin's kid order and only holds subtrees that
    could be resolved; ``parts`` keeps the origin's part order.
    """

    item: Item
    comments: Tuple["ResolvedTree", ...] = ()
    parts: Tuple[Item, ...] = ()


@dataclass(frozen=True)
class UserProfile:
    """An origin user record."""

    id: str
    created: int = 0
    karma: int = 0
    about: Optional[str] = None
    submitted: Tuple[int, ...] = field(default=(), repr=False)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "UserProfile":
        return cls(
            id=str(payload["id"]),
            created=int(payload.get("created") or 0),
            karma=int(payload.get("karma") or 0),
            about=payload.get("about"),
            submitted=tuple(payload.get("submitted") or ()),
        )
