from __future__ import annotations

import argparse
import asyncio
import json
import logging
from typing import Optional

from adaptive_crawler.components import ChangeDetectionComponent, MetricsTrackingComponent
from adaptive_crawler.components.base import Capability
from adaptive_crawler.config import CrawlerConfig
from adaptive_crawler.core import CrawlCore
from adaptive_crawler.factory import CrawlerFactory
from adaptive_crawler.log import setup_logger


def _load_config(path: Optional[str]) -> CrawlerConfig:
    if not path:
        return CrawlerConfig()
    with open(path, "r", encoding="utf-8") as f:
        return CrawlerConfig.from_dict(json.load(f))


def _apply_overrides(config: CrawlerConfig, args: argparse.Namespace) -> CrawlerConfig:
    if args.start_url:
        config.start_url = args.start_url
    if args.allowed_domain:
        config.allowed_domains = list(args.allowed_domain)
    if args.exclude:
        config.exclude_url_patterns = list(args.exclude)
    if args.sensitive_domain:
        config.sensitive_domains = list(args.sensitive_domain)
    if args.max_pages is not None:
        config.max_pages = args.max_pages
    if args.max_depth is not None:
        config.max_depth = args.max_depth
    if args.concurrency is not None:
        config.max_concurrent_requests = args.concurrency
    if args.rpm is not None:
        config.requests_per_minute = args.rpm
    if args.impersonate:
        config.impersonate = args.impersonate
    if args.output_dir:
        config.output_directory = args.output_dir
    if args.no_rate_limit:
        config.enable_rate_limiting = False
    if args.no_change_detection:
        config.enable_change_detection = False
    return config


def _report(core: CrawlCore) -> None:
    metrics = core.get_component(Capability.METRICS)
    if isinstance(metrics, MetricsTrackingComponent) and metrics.last_summary:
        summary = metrics.last_summary
        print(
            f"\nDONE: success={summary['success_count']} "
            f"fail={summary['total_requests'] - summary['success_count']} "
            f"total={summary['total_requests']} avg_latency_ms={summary['avg_latency_ms']}"
        )

    detector = core.get_component(Capability.CHANGE_DETECTOR)
    if isinstance(detector, ChangeDetectionComponent):
        for notification in detector.pending_notifications():
            print(f"\nNOTIFY {notification.scraper_name} ({notification.change_type.name}):")
            print(notification.summary)


def run_crawl(config: CrawlerConfig, log_file: Optional[str] = None, verbose: bool = False) -> None:
    setup_logger(log_file=log_file, level=logging.DEBUG if verbose else logging.INFO)
    core = CrawlerFactory(config).create_core()
    try:
        state = asyncio.run(core.run())
        print(f"Crawl finished with state={state.value}")
        _report(core)
    except KeyboardInterrupt:
        core.cancel()
    finally:
        core.dispose()


def main() -> None:
    parser = argparse.ArgumentParser(description="Adaptive, change-aware web crawler")
    parser.add_argument("--config", help="Path to a JSON file with CrawlerConfig fields")
    parser.add_argument("--start-url", help="URL to start crawling from")
    parser.add_argument("--allowed-domain", action="append", help="Domain to stay within (repeatable)")
    parser.add_argument("--exclude", action="append", help="Skip URLs containing this text (repeatable)")
    parser.add_argument("--sensitive-domain", action="append", help="Domain held to a 2s minimum delay (repeatable)")

    parser.add_argument("--max-pages", type=int, help="Max number of pages to fetch")
    parser.add_argument("--max-depth", type=int, help="Max link depth from the start URL")
    parser.add_argument("--concurrency", type=int, help="Max concurrent requests")
    parser.add_argument("--rpm", type=float, help="Default requests per minute per domain")
    parser.add_argument("--impersonate", help="curl_cffi browser fingerprint, e.g. chrome120")

    parser.add_argument("--output-dir", help="Directory for metadata, site profiles and version history")
    parser.add_argument("--no-rate-limit", action="store_true", help="Disable adaptive rate limiting")
    parser.add_argument("--no-change-detection", action="store_true", help="Disable content change detection")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("--verbose", action="store_true", help="Log at DEBUG level")

    args = parser.parse_args()
    config = _apply_overrides(_load_config(args.config), args)

    if not config.start_url:
        print("Nothing to do. Use --start-url (or --config) to start a crawl.")
        return

    run_crawl(config, log_file=args.log_file, verbose=args.verbose)


if __name__ == "__main__":
    main()
