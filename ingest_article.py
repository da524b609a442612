#!/usr/bin/env python3
"""Ingest a single article on demand.

Examples:
    python ingest_article.py https://www.reuters.com/technology/...
    python ingest_article.py --file story.txt --title "Apple beats estimates" --symbol AAPL --manual
    python ingest_article.py --async https://techcrunch.com/...
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from dotenv import load_dotenv

from biaz.config import Settings, configure_logging
from biaz.errors import IngestionRejected, PipelineError
from biaz.extraction.acquire import FetchStrategy
from biaz.services import Services
from biaz.tasks.queue import INGEST_ARTICLE

logger = logging.getLogger("ingest_article")


def _parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ingest one financial news article")
    parser.add_argument("url", nargs="?", help="Article URL")
    parser.add_argument("--file", help="Read pasted article text from this file")
    parser.add_argument("--title", help="Title for pasted content")
    parser.add_argument("--symbol", help="Manual ticker override")
    parser.add_argument("--strategy", choices=[s.value for s in FetchStrategy], help="Pin one fetch strategy")
    parser.add_argument("--manual", action="store_true", help="Explicit manual submission")
    parser.add_argument("--async", dest="background", action="store_true", help="Run as a background task")
    args = parser.parse_args(argv)
    if not args.url and not args.file:
        parser.error("a URL or --file is required")
    return args


async def _run(args: argparse.Namespace) -> dict:
    content = None
    if args.file:
        with open(args.file, "r", encoding="utf-8") as f:
            content = f.read()

    services = Services.build(Settings.from_env())
    try:
        await services.start()
        if args.background:
            task_id = await services.queue.submit(
                INGEST_ARTICLE,
                {
                    "url": args.url,
                    "symbol": args.symbol,
                    "strategy": args.strategy,
                    "content": content,
                    "title": args.title,
                    "manual": args.manual,
                },
            )
            await services.queue.drain()
            task = await services.queue.get_status(task_id)
            return {
                "task_id": task_id,
                "status": task.status if task else None,
                "error": task.error_message if task else None,
                "result": task.result if task else None,
            }

        def on_progress(percent: int, message: str) -> None:
            print(f"{percent:3d}% {message}", file=sys.stderr)

        article = await services.orchestrator.ingest(
            url=args.url,
            manual_symbol=args.symbol,
            strategy=FetchStrategy(args.strategy) if args.strategy else None,
            pasted_content=content,
            pasted_title=args.title,
            progress=on_progress,
            manual=args.manual,
        )
        return article.to_dict()
    finally:
        await services.close()


def main(argv=None) -> int:
    load_dotenv()
    args = _parse_args(argv)
    try:
        result = asyncio.run(_run(args))
    except IngestionRejected as e:
        logger.warning(f"Rejected ({e.reason.value}): {e}")
        return 2
    except PipelineError as e:
        logger.error(f"Ingestion failed: {e}")
        return 1
    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    configure_logging()
    sys.exit(main())
