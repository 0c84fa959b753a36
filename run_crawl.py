"""CLI entry point.

This script crawls the configured job boards, deduplicates the results and
writes a JSON list to disk.

Examples:
    python run_crawl.py --keyword "前端工程師" --pages 2
    python run_crawl.py --providers 104,1111 --output data/jobs.json --debug
    python run_crawl.py --providers 104 --no-browser

Unset options fall back to environment variables (KEYWORD, PAGES, DELAY,
PROVIDERS, OUTPUT, DEBUG, BROWSER), which may also live in a `.env` file.
"""

from __future__ import annotations

import argparse
from typing import Any, Dict

from job_crawler.config import env_bool, load_env, merge_options, setup_logging
from job_crawler.debug import FileDebugSink
from job_crawler.orchestrator import Crawler, run_crawler
from job_crawler.registry import available
from job_crawler.session import open_sessions


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Crawl job listings from multiple Taiwanese job boards.")
    p.add_argument("--keyword", type=str, default=None, help="Search keyword.")
    p.add_argument("--pages", type=int, default=None, help="Max result pages per source.")
    p.add_argument("--delay", type=int, default=None, help="Delay between pages in milliseconds.")
    p.add_argument(
        "--providers",
        type=str,
        default=None,
        help=f"Comma-separated sources to crawl, in order. Known: {','.join(available())}.",
    )
    p.add_argument("--output", type=str, default=None, help='Output JSON file path ("" to skip writing).')
    p.add_argument("--debug", action="store_true", default=None, help="Verbose logs and raw page dumps.")
    p.add_argument("--debug-dir", type=str, default=".", help="Where debug page dumps are written.")
    p.add_argument(
        "--no-browser",
        action="store_true",
        help="Use plain HTTP sessions; only structured endpoints will work.",
    )
    return p.parse_args()


def main() -> None:
    args = parse_args()
    load_env()

    partial: Dict[str, Any] = {
        k: v
        for k, v in {
            "keyword": args.keyword,
            "pages": args.pages,
            "delay": args.delay,
            "providers": args.providers,
            "debug": args.debug,
            "output": args.output,
        }.items()
        if v is not None
    }
    options = merge_options(partial)
    setup_logging("DEBUG" if options.debug else "INFO")

    use_browser = not args.no_browser and env_bool("BROWSER", True)
    crawler = Crawler(
        sessions=lambda: open_sessions(use_browser=use_browser),
        debug_sink=FileDebugSink(args.debug_dir),
    )
    result = run_crawler(options, crawler)

    for report in result.reports:
        print(f"{report.source}: {len(report.records)} jobs, {report.pages_fetched} pages, stop={report.stop_reason.value}")
    print(f"Total {len(result.records)} jobs (raw {result.raw_count})")


if __name__ == "__main__":
    main()
