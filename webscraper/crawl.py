"""CLI entrypoint for running image crawls and listing stored images."""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys
from typing import Any

from webscraper.crawler import (
    CrawlConfig,
    CrawlerError,
    SessionManager,
    load_config,
)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Crawl one site within depth and robots.txt limits, compressing large images.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to JSON/YAML crawl config.",
    )
    parser.add_argument(
        "--state_dir",
        type=Path,
        default=None,
        help="Directory for session manifests, image records, and logs.",
    )
    parser.add_argument(
        "--output_dir",
        type=Path,
        default=None,
        help="Root directory for compressed images (one folder per domain).",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl = subparsers.add_parser("crawl", help="Crawl a site starting from a seed URL.")
    crawl.add_argument("url", help="Seed URL; its host defines the crawl domain.")
    crawl.add_argument(
        "--max_depth",
        type=int,
        default=0,
        help="Maximum link depth below the seed (seed is depth 0).",
    )
    crawl.add_argument(
        "--delay_ms",
        type=int,
        default=0,
        help="Delay between requests in ms; a robots.txt crawl-delay takes precedence.",
    )
    crawl.add_argument(
        "--proxy",
        action="append",
        default=[],
        help="Proxy as host:port (repeatable). Unreachable proxies are dropped before crawling.",
    )
    crawl.add_argument(
        "--print_stats_json",
        action="store_true",
        help="Print full per-session stats JSON after the crawl.",
    )

    images = subparsers.add_parser("images", help="List stored images for a domain.")
    images.add_argument("domain", help="Domain or URL to list images for.")

    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> CrawlConfig:
    config = load_config(args.config) if args.config else CrawlConfig()

    overrides: dict[str, Any] = {}
    if args.state_dir is not None:
        overrides["state_dir"] = str(args.state_dir)
    if args.output_dir is not None:
        overrides["output_dir"] = str(args.output_dir)
    if not overrides:
        return config

    payload = config.to_dict()
    payload.update(overrides)
    return CrawlConfig.from_dict(payload)


def setup_logging(state_dir: Path, verbose: bool) -> None:
    log_level = logging.DEBUG if verbose else logging.INFO

    log_dir = state_dir / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / "crawl.log"

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setLevel(log_level)
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(log_level)
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    # Connection-pool chatter drowns out crawl progress at DEBUG.
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)


def print_summary(session_id: str, state: str, stats: dict[str, Any], *, print_stats_json: bool) -> None:
    print("\n=== Crawl Complete ===")
    print(f"session: {session_id}")
    print(f"state: {state}")

    print("\n--- Core Stats ---")
    for key in [
        "admitted",
        "skipped_seen",
        "skipped_depth",
        "skipped_out_of_scope",
        "skipped_robots",
        "fetch_ok",
        "fetch_failed",
        "documents_processed",
        "images_compressed",
        "images_skipped_small",
        "images_failed",
        "duration_seconds",
    ]:
        if key in stats:
            print(f"{key}: {stats[key]}")

    if print_stats_json:
        print("\n--- Full Stats JSON ---")
        print(json.dumps(stats, indent=2, sort_keys=True))


def run_crawl(manager: SessionManager, args: argparse.Namespace) -> int:
    try:
        session_id = manager.start_crawl(
            args.url,
            max_depth=args.max_depth,
            request_delay_ms=args.delay_ms,
            proxies=args.proxy,
        )
    except (CrawlerError, ValueError) as exc:
        logging.error("Cannot start crawl: %s", exc)
        return 2

    session = manager.get_session(session_id)
    try:
        state = manager.wait(session_id)
    except KeyboardInterrupt:
        logging.error("Interrupted by user, stopping session %s", session_id)
        manager.stop_crawl(session_id)
        manager.wait(session_id, timeout=30.0)
        return 130

    stats = session.stats.snapshot() if session is not None else {}
    print_summary(
        session_id,
        state.value if state is not None else "unknown",
        stats,
        print_stats_json=args.print_stats_json,
    )
    return 0


def list_images(manager: SessionManager, args: argparse.Namespace) -> int:
    records = manager.list_images(args.domain)
    for record in records:
        print(json.dumps(record.to_json(), sort_keys=True))
    logging.info("%d images stored for %s", len(records), args.domain)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        config = build_config(args)
    except Exception as exc:
        logging.basicConfig(level=logging.INFO)
        logging.error("Failed to build config: %s", exc)
        return 2

    setup_logging(Path(config.state_dir), verbose=args.verbose)

    try:
        with SessionManager(config) as manager:
            if args.command == "images":
                return list_images(manager, args)
            return run_crawl(manager, args)
    except KeyboardInterrupt:
        logging.error("Interrupted by user")
        return 130
    except Exception:
        logging.exception("Crawl failed")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
