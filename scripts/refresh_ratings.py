#!/usr/bin/env python3
"""Rating refresh job for cron.

Schedule:
- Run once per day; records younger than RATING_REFRESH_HORIZON_DAYS (7) are skipped.

Behavior (rate-limit friendly):
- For each platform (trustpilot, google) and each provider in the refresh list:
  - Skip when the stored rating is still fresh (unless --force)
  - Fetch from the platform and upsert into its rating table
  - Failed lookups are reported as fallbacks and never written
- Providers are processed one at a time with RATING_FETCH_DELAY_SECONDS between calls
- A Redis lock per platform keeps two runs from overlapping

Run (local / cron):
  python -m scripts.refresh_ratings
  python -m scripts.refresh_ratings --platform google --force wise western-union

Optional env vars:
  REFRESH_PROVIDERS="wise,western-union,torfx"
"""

import argparse
import asyncio
from datetime import timedelta
import os
import sys


# Ensure imports work when executed as a script/module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from ratings_api.models import rating_model_for  # noqa: E402
from ratings_api.services.google_places import GooglePlacesClient  # noqa: E402
from ratings_api.services.normalizer import display_name_from_slug  # noqa: E402
from ratings_api.services.rating_fetcher import RatingFetcher, RefreshReport  # noqa: E402
from ratings_api.services.rating_tables import RatingTables, load_rating_tables  # noqa: E402
from ratings_api.services.records import RatingPlatform  # noqa: E402
from ratings_api.services.trustpilot import TrustpilotClient  # noqa: E402
from ratings_api.settings import get_settings  # noqa: E402
from ratings_api.stores.postgres import close_db, init_db, ping_db  # noqa: E402
from ratings_api.stores.ratings import SqlRatingStore  # noqa: E402
from ratings_api.stores.redis import acquire_lock, close_redis, init_redis, release_lock  # noqa: E402


def _parse_csv_env(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    return [p.strip() for p in raw.split(",") if p.strip()]


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Refresh stored provider ratings")
    parser.add_argument(
        "providers",
        nargs="*",
        help="Provider slugs (default: REFRESH_PROVIDERS or the rating tables' refresh list)",
    )
    parser.add_argument(
        "--platform",
        choices=[p.value for p in RatingPlatform] + ["all"],
        default="all",
    )
    parser.add_argument("--force", action="store_true", help="Refresh even fresh ratings")
    parser.add_argument("--limit", type=int, default=None, help="Only refresh the first N providers")
    return parser.parse_args(argv)


def _select_platforms(choice: str) -> list[RatingPlatform]:
    if choice == "all":
        return list(RatingPlatform)
    return [RatingPlatform(choice)]


def _build_source(platform: RatingPlatform, tables: RatingTables) -> GooglePlacesClient | TrustpilotClient:
    if platform is RatingPlatform.GOOGLE:
        return GooglePlacesClient()
    return TrustpilotClient(tables.trustpilot_domains)


async def _refresh_platform(
    platform: RatingPlatform,
    tables: RatingTables,
    display_names: list[str],
    force: bool,
) -> RefreshReport:
    settings = get_settings()
    source = _build_source(platform, tables)
    fetcher = RatingFetcher(
        platform,
        source,
        SqlRatingStore(rating_model_for(platform)),
        tables.aliases,
        fallback_value=settings.fallback_fetch_rating,
        delay_seconds=settings.rating_fetch_delay_seconds,
        refresh_horizon=timedelta(days=settings.rating_refresh_horizon_days),
    )
    try:
        return await fetcher.refresh_ratings(display_names, force=force)
    finally:
        await source.close()


def _select_providers(args: argparse.Namespace, tables: RatingTables) -> list[str]:
    """Provider slugs to refresh: CLI args, else REFRESH_PROVIDERS, else the tables' list."""
    slugs = args.providers or _parse_csv_env("REFRESH_PROVIDERS", list(tables.refresh_providers))
    if args.limit is not None:
        slugs = slugs[: args.limit]
    return slugs


async def _run_platforms(
    platforms: list[RatingPlatform],
    tables: RatingTables,
    display_names: list[str],
    force: bool,
    use_lock: bool,
) -> list[dict]:
    """Refresh each platform under its own lock; a held lock skips that platform."""
    summaries: list[dict] = []
    for platform in platforms:
        lock_key = f"ratings-refresh:{platform.value}"
        if use_lock and not await acquire_lock(lock_key):
            summaries.append({"platform": platform.value, "skipped": "refresh already running"})
            continue
        try:
            report = await _refresh_platform(platform, tables, display_names, force)
            summaries.append(report.summary())
        finally:
            if use_lock:
                await release_lock(lock_key)
    return summaries


async def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = get_settings()

    # Initialize shared connections (same as API lifespan, but for a one-off cron run)
    await init_db()
    await ping_db()
    redis_ok = True
    try:
        await init_redis()
    except Exception:
        # Cron can still run without Redis (no place-id cache, no overlap lock).
        redis_ok = False

    try:
        tables = load_rating_tables(settings.rating_tables_file)
        display_names = [display_name_from_slug(s) for s in _select_providers(args, tables)]
        summaries = await _run_platforms(
            _select_platforms(args.platform), tables, display_names, args.force, redis_ok
        )

        # Final output for cron logs (single JSON-ish blob)
        print(
            {
                "ok": True,
                "tables_version": tables.version,
                "providers": len(display_names),
                "force": args.force,
                "platforms": summaries,
            }
        )
    finally:
        await close_redis()
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
