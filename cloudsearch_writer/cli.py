"""Command line entry for the Cloud Search index writer.

Usage:
    cloudsearch-writer index --config connector.properties --upload-format TEXT docs.jsonl
    cloudsearch-writer delete --config connector.properties http://example.com/a http://example.com/b
    cloudsearch-writer describe
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from cloudsearch_writer.core.config import settings
from cloudsearch_writer.core.exceptions import DocumentError, IndexWriterError
from cloudsearch_writer.indexing.writer import (
    CONFIG_KEY_CONFIG_FILE,
    CONFIG_KEY_UPLOAD_FORMAT,
    CloudSearchIndexWriter,
)
from cloudsearch_writer.models.document import CrawlDocument

logger = logging.getLogger("cloudsearch_writer")


def iter_documents(path: Path) -> Iterator[CrawlDocument]:
    """Yield documents from a JSON Lines crawl dump, skipping malformed lines."""

    with open(path, "r", encoding="utf-8") as handle:
        for line_number, line in enumerate(handle, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as exc:
                logger.warning("Skipping %s:%d: invalid JSON (%s)", path, line_number, exc)
                continue
            if not isinstance(record, dict):
                logger.warning("Skipping %s:%d: expected a JSON object", path, line_number)
                continue
            yield CrawlDocument.from_dict(record)


def _writer_params(args: argparse.Namespace) -> Dict[str, Optional[str]]:
    config_file = args.config or settings.CONFIG_FILE
    return {
        CONFIG_KEY_CONFIG_FILE: str(config_file) if config_file else None,
        CONFIG_KEY_UPLOAD_FORMAT: args.upload_format or settings.UPLOAD_FORMAT,
    }


async def run_index(args: argparse.Namespace, writer: Optional[CloudSearchIndexWriter] = None) -> Dict[str, int]:
    writer = writer or CloudSearchIndexWriter()
    async with writer.session(_writer_params(args)):
        for path in args.inputs:
            for document in iter_documents(Path(path)):
                try:
                    if args.update:
                        await writer.update(document)
                    else:
                        await writer.write(document)
                except DocumentError as exc:
                    logger.warning("Rejected document %s: %s", document.get_field_value("id"), exc)
        await writer.commit()
    return writer.stats.as_dict()


async def run_delete(args: argparse.Namespace, writer: Optional[CloudSearchIndexWriter] = None) -> Dict[str, int]:
    writer = writer or CloudSearchIndexWriter()
    async with writer.session(_writer_params(args)):
        for key in args.ids:
            await writer.delete(key)
    return writer.stats.as_dict()


def describe() -> str:
    lines: List[str] = [CloudSearchIndexWriter().describe()]
    for key, description in CloudSearchIndexWriter.describe_options().items():
        lines.append(f"  {key}: {description}")
    return "\n".join(lines)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Push crawled documents into Google Cloud Search")
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="Logging level (default: %(default)s)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_connection_args(sub: argparse.ArgumentParser) -> None:
        sub.add_argument("--config", help=f"Connector configuration file ({CONFIG_KEY_CONFIG_FILE})")
        sub.add_argument("--upload-format", choices=["RAW", "TEXT", "raw", "text"], help="Content upload format")

    index_parser = subparsers.add_parser("index", help="Index documents from JSON Lines files")
    add_connection_args(index_parser)
    index_parser.add_argument("--update", action="store_true", help="Submit documents as updates")
    index_parser.add_argument("inputs", nargs="+", help="JSON Lines files with one document per line")

    delete_parser = subparsers.add_parser("delete", help="Delete items by id")
    add_connection_args(delete_parser)
    delete_parser.add_argument("ids", nargs="+", help="Item ids to delete")

    subparsers.add_parser("describe", help="Describe the writer and its parameters")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        if args.command == "describe":
            print(describe())
            return 0
        if args.command == "index":
            summary = asyncio.run(run_index(args))
        else:
            summary = asyncio.run(run_delete(args))
    except KeyboardInterrupt:
        logger.info("Operation cancelled by user.")
        return 1
    except (IndexWriterError, OSError) as exc:
        logger.error("Operation failed: %s", exc)
        return 1

    logger.info("Done: %s", summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
