"""
Placeholder profile records for accounts the provider cannot answer for.

Synthesized records are derived only from the account id, so the same id
always produces the same record. They carry no timestamp and are flagged
non-authoritative.
"""
from tiktrack.models.profile import ProfileRecord

PLACEHOLDER_AVATAR_URL = (
    "https://p16-sign-va.tiktokcdn.com/tos-maliva-avt-0068/placeholder.jpg"
)
PLACEHOLDER_BIO = "Profile data pending..."


def synthesize(account_id: str) -> ProfileRecord:
    """
    Build a structurally valid, non-authoritative ProfileRecord.

    Args:
        account_id: Upstream account id.

    Returns:
        ProfileRecord with handle `user_<first 8 chars>`, zeroed statistics,
        authoritative=False and last_updated=None.
    """
    return ProfileRecord(
        account_id=account_id,
        handle=f"user_{account_id[:8]}",
        display_name=f"TikTok User {account_id[:6]}",
        avatar_url=PLACEHOLDER_AVATAR_URL,
        bio=PLACEHOLDER_BIO,
        verified=False,
        followers=0,
        following=0,
        engagement=0,
        post_count=0,
        authoritative=False,
        last_updated=None,
    )
