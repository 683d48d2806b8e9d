"""
Run a doctor directory scrape from CLI.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import time

from db.config import load_env_files
from doctor_scraper.scraping.config import get_scraper_settings
from doctor_scraper.services.scraper_service import build_scraper_service


def main() -> int:
    parser = argparse.ArgumentParser(description="Scrape Nobat.ir doctor profiles into a CSV export.")
    parser.add_argument(
        "--listing-url",
        dest="listing_url",
        default=None,
        help="Listing page to start from. Defaults to SCRAPER_LISTING_URL.",
    )
    parser.add_argument("--delay-ms", dest="delay_ms", type=int, default=None, help="Pause between profiles.")
    parser.add_argument(
        "--max-retries",
        dest="max_retries",
        type=int,
        default=None,
        help="Retries per profile (capped at 5).",
    )
    parser.add_argument(
        "--stop-after",
        dest="stop_after",
        type=float,
        default=None,
        help="Request a stop after this many seconds and export what was collected.",
    )
    args = parser.parse_args()

    load_env_files()
    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    settings = get_scraper_settings()
    service = build_scraper_service(settings=settings)
    try:
        changes = {
            key: value
            for key, value in (("delay_ms", args.delay_ms), ("max_retries", args.max_retries))
            if value is not None
        }
        result = service.start_scraping(changes, listing_url=args.listing_url or settings.listing_url)
        if result.get("status") == "error":
            print(json.dumps(result, indent=2))
            return 1

        if args.stop_after is not None and result.get("status") == "started":
            time.sleep(max(0.0, args.stop_after))
            service.stop_scraping()
        service.wait_until_idle()

        print(json.dumps(service.get_status(), indent=2, ensure_ascii=False))
    finally:
        service.shutdown()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
