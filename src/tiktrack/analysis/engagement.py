"""
Post-level engagement analytics for one account.

All functions take normalized post dicts (see provider.normalizer.normalize_post)
and are pure so they can be tested without a DB or the provider.
"""
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List

_TOP_HASHTAGS = 5


def _dated(posts: List[Dict[str, Any]]) -> List[datetime]:
    return sorted(p["created_at"] for p in posts if p.get("created_at") is not None)


def average_views_per_post(posts: List[Dict[str, Any]]) -> int:
    if not posts:
        return 0
    return round(total_metric(posts, "plays") / len(posts))


def average_hours_between_posts(posts: List[Dict[str, Any]]) -> float:
    """Mean gap between consecutive posts, in hours. 0.0 with fewer than two dated posts."""
    dates = _dated(posts)
    if len(dates) <= 1:
        return 0.0
    span = (dates[-1] - dates[0]).total_seconds()
    return span / (len(dates) - 1) / 3600.0


def average_engagement_rate(posts: List[Dict[str, Any]]) -> float:
    """
    Mean of per-post (likes + comments + shares) / plays, as a percentage.

    Posts with zero plays contribute 0% but still count in the denominator.
    """
    if not posts:
        return 0.0
    total_rate = 0.0
    for p in posts:
        plays = p.get("plays") or 0
        if plays > 0:
            engagement = (p.get("likes") or 0) + (p.get("comments") or 0) + (p.get("shares") or 0)
            total_rate += engagement / plays * 100.0
    return total_rate / len(posts)


def post_frequency(posts: List[Dict[str, Any]]) -> Dict[str, float]:
    """Posts per week and per month over the span of the dated posts."""
    result = {"weekly": 0.0, "monthly": 0.0}
    dates = _dated(posts)
    if len(dates) < 2:
        return result
    total_days = (dates[-1] - dates[0]).total_seconds() / 86400.0
    if total_days > 0:
        result["weekly"] = len(dates) / total_days * 7
        result["monthly"] = len(dates) / total_days * 30
    return result


def top_hashtags(posts: List[Dict[str, Any]], limit: int = _TOP_HASHTAGS) -> List[str]:
    counts: Counter = Counter()
    for p in posts:
        counts.update(t for t in p.get("hashtags") or [] if isinstance(t, str))
    return [tag for tag, _ in counts.most_common(limit)]


def total_metric(posts: List[Dict[str, Any]], field: str) -> int:
    return sum(p.get(field) or 0 for p in posts)


def compute_analytics(posts: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Compute the full analytics field dict for ProfileAnalytics.

    An empty post list yields all-zero analytics rather than an error.

    Args:
        posts: Normalized post dicts.

    Returns:
        Dict keyed by ProfileAnalytics column names (minus account_id and
        calculated_at, which the caller owns). Hashtags are returned as a list
        under "top_hashtags".
    """
    freq = post_frequency(posts)
    return {
        "post_count": len(posts),
        "avg_views_per_post": average_views_per_post(posts),
        "avg_hours_between_posts": average_hours_between_posts(posts),
        "avg_engagement_rate": average_engagement_rate(posts),
        "weekly_post_frequency": freq["weekly"],
        "monthly_post_frequency": freq["monthly"],
        "top_hashtags": top_hashtags(posts),
        "total_likes": total_metric(posts, "likes"),
        "total_comments": total_metric(posts, "comments"),
        "total_shares": total_metric(posts, "shares"),
        "total_views": total_metric(posts, "plays"),
    }
