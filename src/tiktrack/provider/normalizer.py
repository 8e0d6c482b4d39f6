"""
TikTok scraper response normalizer.

Converts raw dicts from the provider into clean field dicts that map
directly onto SQLModel columns. No DB access here; callers (the batch
refresher) handle persistence.

The scraper is inconsistent about key names across endpoints and versions:

  /user/info:
    - {"data": {"user": {...}, "stats": {...}}}
    - hearts appear as "heart", "heartCount" or "diggCount"

  /user/posts video items:
    - counters are snake_case ("play_count", "digg_count", ...)
    - creation time is epoch seconds in "create_time"

Both are handled here so the rest of the code sees one shape.
"""
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

_HASHTAG_RE = re.compile(r"#(\w+)")


def _first(d: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first non-empty value among keys."""
    for k in keys:
        v = d.get(k)
        if v not in (None, ""):
            return v
    return default


def _as_int(v: Any) -> int:
    try:
        return int(v or 0)
    except (TypeError, ValueError):
        return 0


def normalize_user_info(raw: Dict[str, Any], account_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Normalize a /user/info response into ProfileRecord field dict.

    Args:
        raw: Full response body ({"data": {"user": ..., "stats": ...}}).
        account_id: Requested id; used when the response omits one.

    Returns:
        Dict with identity and statistics keys. `authoritative` and
        `last_updated` are left to the caller.
    """
    data = raw.get("data") or {}
    user = data.get("user") or {}
    stats = data.get("stats") or {}

    uid = str(_first(user, "id", "uid", "user_id", default=account_id or ""))
    handle = _first(user, "uniqueId", "username", default=f"user_{uid[:8]}")

    return {
        "account_id": uid,
        "handle": handle,
        "display_name": _first(user, "nickname", "name", default=handle),
        "avatar_url": _first(user, "avatarLarger", "avatarMedium", "avatarThumb", default=""),
        "bio": _first(user, "signature", "bio", default=""),
        "verified": bool(user.get("verified", False)),
        "followers": _as_int(_first(stats, "followerCount", "followers")),
        "following": _as_int(_first(stats, "followingCount", "following")),
        "engagement": _as_int(_first(stats, "heartCount", "heart", "diggCount")),
        "post_count": _as_int(_first(stats, "videoCount", "videos")),
    }


def normalize_post(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize one /user/posts video item into a post dict for analytics.

    Returns:
        {"post_id", "created_at", "plays", "likes", "comments", "shares",
         "hashtags"}; created_at is None when the item has no usable time.
    """
    created = _first(raw, "create_time", "createTime")
    created_at = None
    if created is not None:
        try:
            created_at = datetime.fromtimestamp(int(created), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            created_at = None

    title = _first(raw, "title", "desc", default="") or ""
    return {
        "post_id": str(_first(raw, "video_id", "aweme_id", "id", default="")),
        "created_at": created_at,
        "plays": _as_int(_first(raw, "play_count", "playCount")),
        "likes": _as_int(_first(raw, "digg_count", "diggCount")),
        "comments": _as_int(_first(raw, "comment_count", "commentCount")),
        "shares": _as_int(_first(raw, "share_count", "shareCount")),
        "hashtags": extract_hashtags(title),
    }


def extract_hashtags(text: str) -> List[str]:
    """Return lower-cased hashtags in order of appearance, without '#'."""
    return [tag.lower() for tag in _HASHTAG_RE.findall(text)]
