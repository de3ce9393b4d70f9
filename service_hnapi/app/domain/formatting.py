"""
Formatting pass turning origin items and resolved trees into API payloads.

All renderers take an optional ``now`` (unix seconds) so relative time
labels are deterministic under test.
"""

from __future__ import annotations

import html
import re
import time
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlparse

from .models import Item, ResolvedTree, UserProfile


TYPE_MAPPING = {
    "story": "link",
}

DELETED_CONTENT = "[deleted]"

_CLOSING_P = re.compile(r"</p>", re.IGNORECASE)
_OPENING_P = re.compile(r"^<p>", re.IGNORECASE)
_WWW = re.compile(r"^www\.", re.IGNORECASE)
_LOCAL_URL = re.compile(r"^item", re.IGNORECASE)
_ASK_TITLE = re.compile(r"^ask", re.IGNORECASE)


def _half_up(value: float) -> int:
    return int(value + 0.5)


def time_ago(timestamp: int, now: Optional[float] = None) -> str:
    """Human relative label such as ``3 hours ago``."""
    if now is None:
        now = time.time()
    delta = now - timestamp
    label = _relative_label(abs(delta))
    return f"in {label}" if delta < 0 else f"{label} ago"


def _relative_label(seconds_elapsed: float) -> str:
    seconds = _half_up(seconds_elapsed)
    minutes = _half_up(seconds / 60)
    hours = _half_up(minutes / 60)
    days = _half_up(hours / 24)
    months = _half_up(days / 30.436875)
    years = _half_up(days / 365.2425)

    if seconds < 45:
        return "a few seconds"
    if minutes <= 1:
        return "a minute"
    if minutes < 45:
        return f"{minutes} minutes"
    if hours <= 1:
        return "an hour"
    if hours < 22:
        return f"{hours} hours"
    if days <= 1:
        return "a day"
    if days < 26:
        return f"{days} days"
    if months <= 1:
        return "a month"
    if months < 11:
        return f"{months} months"
    if years <= 1:
        return "a year"
    return f"{years} years"


def decode_title(title: Optional[str]) -> Optional[str]:
    """Decode HTML entities in a title."""
    if title is None:
        return None
    return html.unescape(title)


def clean_text(text: Optional[str]) -> Optional[str]:
    """Drop closing paragraph tags and make the body start with ``<p>``."""
    if not text:
        return None
    cleaned = _CLOSING_P.sub("", text)
    if not _OPENING_P.match(cleaned):
        cleaned = "<p>" + cleaned
    return cleaned


def domain_of(url: str) -> Optional[str]:
    """Hostname of an external URL without a leading ``www.``."""
    hostname = urlparse(url).hostname
    if not hostname:
        return None
    return _WWW.sub("", hostname)


def _content(item: Item) -> Optional[str]:
    return DELETED_CONTENT if item.deleted else clean_text(item.text)


def _headline(item: Item, now: Optional[float]) -> Dict[str, Any]:
    """Fields shared by listing entries and item pages."""
    output: Dict[str, Any] = {
        "id": item.id,
        "title": decode_title(item.title),
        "points": item.score,
        "user": item.by,
        "time": item.time,
        "time_ago": time_ago(item.time, now),
        "type": TYPE_MAPPING.get(item.type, item.type),
    }

    if item.url:
        output["url"] = item.url
        domain = domain_of(item.url)
        if domain:
            output["domain"] = domain
    else:
        # Simulate "local" links
        output["url"] = f"item?id={item.id}"

    # Username and points mean nothing for job postings
    if item.type == "job":
        output["user"] = None
        output["points"] = None

    if (item.type == "story" and _LOCAL_URL.match(output["url"])
            and item.title and _ASK_TITLE.match(item.title)):
        output["type"] = "ask"

    return output


def render_listing_entry(item: Item, now: Optional[float] = None) -> Dict[str, Any]:
    """Flat listing form of an item."""
    output = _headline(item, now)
    output["comments_count"] = item.descendants or 0
    return output


def render_comment(item: Item, level: int, now: Optional[float] = None) -> Dict[str, Any]:
    """Comment form of an item, without its replies."""
    return {
        "id": item.id,
        "level": level,
        "user": item.by,
        "time": item.time,
        "time_ago": time_ago(item.time, now),
        "content": _content(item),
        "deleted": item.deleted,
        "dead": item.dead,
    }


def _render_comments(nodes: Tuple[ResolvedTree, ...], level: int, now: Optional[float]) -> Tuple[list, int]:
    rendered = []
    count = 0
    for node in nodes:
        entry = render_comment(node.item, level, now)
        entry["comments"], nested = _render_comments(node.comments, level + 1, now)
        rendered.append(entry)
        count += 1 + nested
    return rendered, count


def render_tree(tree: ResolvedTree, now: Optional[float] = None) -> Dict[str, Any]:
    """Item page: headline, body, poll options and the nested comment tree.

    ``comments_count`` counts the comment nodes actually rendered, which can be
    lower than the origin's ``descendants`` when subtrees were dropped.
    """
    item = tree.item
    output = _headline(item, now)
    output["content"] = _content(item)
    output["deleted"] = item.deleted
    output["dead"] = item.dead

    if tree.parts:
        output["poll"] = [
            {"item": decode_title(part.text or part.title), "points": part.score}
            for part in tree.parts
        ]

    output["comments"], output["comments_count"] = _render_comments(tree.comments, 0, now)
    return output


def render_user(profile: UserProfile, now: Optional[float] = None) -> Dict[str, Any]:
    """Public user profile."""
    return {
        "id": profile.id,
        "created_time": profile.created,
        "created": time_ago(profile.created, now),
        "karma": profile.karma,
        "avg": None,
        "about": clean_text(profile.about),
    }


def render_new_comment(item: Item, now: Optional[float] = None) -> Dict[str, Any]:
    """Entry of the recent comments feed."""
    output = render_comment(item, 0, now)
    del output["level"]
    output["parent"] = item.parent
    return output
