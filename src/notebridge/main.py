#!/usr/bin/env python
"""Main entry point for the notebridge MCP server."""
import argparse
import atexit
import logging
import os
import sys
from pathlib import Path

from notebridge.config import config
from notebridge.observability import configure_logging, metrics
from notebridge.server.mcp_server import NotebridgeMcpServer
from notebridge.storage.corpus_loader import CorpusLoader


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="notebridge MCP server")
    parser.add_argument(
        "--notes-dir",
        help="Directory holding note files (*.md, *.json)",
        type=str,
        default=os.environ.get("NOTEBRIDGE_NOTES_DIR")
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("NOTEBRIDGE_LOG_LEVEL", "INFO")
    )
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.notes_dir:
        config.notes_dir = Path(args.notes_dir)


def _save_metrics_on_exit():
    """Save metrics to disk on server shutdown."""
    if metrics.save_metrics():
        logging.getLogger(__name__).info("Metrics saved to disk on shutdown")


def main(argv=None):
    """Run the notebridge MCP server."""
    args = parse_args(argv)
    update_config(args)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    try:
        log_dir = configure_logging(level=log_level, console=True)
    except OSError as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")
        log_dir = None

    logger = logging.getLogger(__name__)
    if log_dir:
        logger.info(f"Persistent logging enabled: {log_dir}")

    atexit.register(_save_metrics_on_exit)

    notes_dir = config.get_notes_dir()
    if not notes_dir.is_dir():
        logger.error(f"Notes directory does not exist: {notes_dir}")
        sys.exit(1)

    try:
        logger.info("Starting notebridge MCP server")
        server = NotebridgeMcpServer(corpus_loader=CorpusLoader(notes_dir))
        server.run()
    except Exception as e:
        logger.error(f"Error running server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
