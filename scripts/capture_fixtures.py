"""
Capture real TikTok scraper responses and save them as test fixtures.

Run this script with RAPIDAPI_KEY set (env or .env):

    python scripts/capture_fixtures.py --account-id 6766559322627589000

Outputs (overwrite tests/fixtures/):
    tiktok_user_info.json    from GET /user/info
    tiktok_user_posts.json   from GET /user/posts

These fixtures are used by the normalizer tests to ensure the normalizer
handles real API response schemas, not hand-crafted guesses.
"""
import argparse
import json
import sys
from pathlib import Path

import httpx

# Allow running from repo root without installing the package
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tiktrack.config import get_settings


FIXTURES_DIR = Path(__file__).parent.parent / "tests" / "fixtures"


def _save(name: str, data: object) -> None:
    path = FIXTURES_DIR / name
    path.write_text(json.dumps(data, indent=2, default=str))
    print(f"  Saved {path} ({path.stat().st_size} bytes)")


def main() -> None:
    parser = argparse.ArgumentParser(description="Capture real TikTok scraper fixtures")
    parser.add_argument("--account-id", required=True, help="Numeric TikTok user id")
    parser.add_argument("--count", type=int, default=10, help="Posts to capture")
    args = parser.parse_args()

    settings = get_settings()
    if not settings.rapidapi_key:
        print("RAPIDAPI_KEY is not set.")
        sys.exit(1)

    headers = {
        "x-rapidapi-key": settings.rapidapi_key,
        "x-rapidapi-host": settings.rapidapi_host,
    }
    FIXTURES_DIR.mkdir(parents=True, exist_ok=True)

    with httpx.Client(
        base_url=f"https://{settings.rapidapi_host}",
        headers=headers,
        timeout=settings.provider_timeout_seconds,
    ) as client:
        print(f"Fetching /user/info for {args.account_id}...")
        info = client.get("/user/info", params={"user_id": args.account_id})
        info.raise_for_status()
        _save("tiktok_user_info.json", info.json())

        print(f"Fetching /user/posts for {args.account_id}...")
        posts = client.get(
            "/user/posts", params={"user_id": args.account_id, "count": args.count}
        )
        posts.raise_for_status()
        _save("tiktok_user_posts.json", posts.json())

    print("Done.")


if __name__ == "__main__":
    main()
