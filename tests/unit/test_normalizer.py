"""Tests for the provider response normalizer, driven by captured fixtures."""
import json
from datetime import datetime, timezone
from pathlib import Path

from tiktrack.provider.normalizer import (
    extract_hashtags,
    normalize_post,
    normalize_user_info,
)

FIXTURES = Path(__file__).parent.parent / "fixtures"
USER_INFO = json.loads((FIXTURES / "tiktok_user_info.json").read_text())
USER_POSTS = json.loads((FIXTURES / "tiktok_user_posts.json").read_text())


class TestNormalizeUserInfo:
    def test_identity_fields(self):
        fields = normalize_user_info(USER_INFO)
        assert fields["account_id"] == "6766559322627589000"
        assert fields["handle"] == "_hi.leila"
        assert fields["display_name"] == "Leila"
        assert fields["bio"] == "coffee, cameras & weekend hikes"
        assert fields["verified"] is False

    def test_prefers_large_avatar(self):
        assert normalize_user_info(USER_INFO)["avatar_url"].endswith("large.jpeg")

    def test_statistics(self):
        fields = normalize_user_info(USER_INFO)
        assert fields["followers"] == 15230
        assert fields["following"] == 312
        assert fields["engagement"] == 481200
        assert fields["post_count"] == 187

    def test_no_authority_or_timestamp_keys(self):
        fields = normalize_user_info(USER_INFO)
        assert "authoritative" not in fields
        assert "last_updated" not in fields

    def test_heart_fallback_keys(self):
        raw = {"data": {"user": {"id": "1", "uniqueId": "x"}, "stats": {"diggCount": 7}}}
        assert normalize_user_info(raw)["engagement"] == 7

    def test_missing_stats_default_to_zero(self):
        raw = {"data": {"user": {"id": "1", "uniqueId": "x"}}}
        fields = normalize_user_info(raw)
        assert fields["followers"] == 0
        assert fields["post_count"] == 0

    def test_missing_handle_uses_requested_id(self):
        raw = {"data": {"user": {"nickname": "Someone"}, "stats": {}}}
        fields = normalize_user_info(raw, account_id="123456789012")
        assert fields["account_id"] == "123456789012"
        assert fields["handle"] == "user_12345678"

    def test_non_numeric_counts_become_zero(self):
        raw = {"data": {"user": {"id": "1"}, "stats": {"followerCount": "n/a"}}}
        assert normalize_user_info(raw)["followers"] == 0


class TestNormalizePost:
    def test_counters(self):
        post = normalize_post(USER_POSTS["data"]["videos"][0])
        assert post["plays"] == 12000
        assert post["likes"] == 900
        assert post["comments"] == 60
        assert post["shares"] == 40

    def test_created_at_from_epoch(self):
        post = normalize_post(USER_POSTS["data"]["videos"][0])
        assert post["created_at"] == datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def test_post_id_prefers_video_id(self):
        post = normalize_post(USER_POSTS["data"]["videos"][0])
        assert post["post_id"] == "7301000000000000001"

    def test_hashtags_from_title(self):
        post = normalize_post(USER_POSTS["data"]["videos"][0])
        assert post["hashtags"] == ["hiking", "sunrise"]

    def test_missing_create_time(self):
        assert normalize_post({"video_id": "1"})["created_at"] is None

    def test_camel_case_counters(self):
        post = normalize_post({"id": "9", "playCount": 5, "diggCount": 2})
        assert post["plays"] == 5
        assert post["likes"] == 2


class TestExtractHashtags:
    def test_lowercases(self):
        assert extract_hashtags("#FYP and #Coffee") == ["fyp", "coffee"]

    def test_none_present(self):
        assert extract_hashtags("just words") == []
