"""
Command line entry point

Commands:
    process INPUT_FILE   replay a transaction CSV, print the account table
    generate             write a random transaction CSV

The account table goes to stdout, logs go to stderr.
"""

import argparse
import random
import sys
import time
from pathlib import Path
from typing import Optional

from .config import get_config
from .csv_io import RecordReader, open_records, write_accounts, write_records
from .errors import SerializationError
from .generator import generate_records
from .ledger import Ledger
from .logging_config import setup_logging, log_action


def cmd_process(args: argparse.Namespace) -> int:
    cfg = get_config()
    logger = setup_logging(args.log_level or cfg.log_level, cfg.log_format, cfg.log_file)

    try:
        stream = open_records(args.input_file, cfg.input_encoding)
    except (OSError, LookupError) as e:
        logger.error(f"Cannot open input file {args.input_file}: {e}")
        return 1

    ledger = Ledger()
    with stream:
        reader = RecordReader(stream)
        summary = ledger.process_records(reader)

    try:
        snapshots = ledger.snapshots()
    except SerializationError as e:
        logger.error(f"Cannot write account table: {e}")
        return 1

    start = time.time()
    written = write_accounts(snapshots, sys.stdout)
    duration_ms = (time.time() - start) * 1000
    log_action(
        logger, "info", f"Wrote {written} accounts",
        action="write_accounts", resource=f"file:{args.input_file}",
        extra={
            "malformed_rows": reader.malformed,
            "applied": summary.applied,
            "rejected": summary.rejected,
            "process_ms": round(summary.duration_ms, 3),
            "duration_ms": round(duration_ms, 3)
        }
    )
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    cfg = get_config()
    logger = setup_logging(args.log_level or cfg.log_level, cfg.log_format, cfg.log_file)

    rows = args.rows if args.rows is not None else cfg.generator_rows
    seed = args.seed if args.seed is not None else cfg.generator_seed
    output = Path(args.output or cfg.generator_output)

    try:
        output.parent.mkdir(parents=True, exist_ok=True)
        with output.open("w", newline="", encoding="utf-8") as stream:
            written = write_records(generate_records(rows, random.Random(seed)), stream)
    except OSError as e:
        logger.error(f"Cannot write {output}: {e}")
        return 1

    logger.info(f"Generated {written} transaction records in {output}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tx-engine",
        description="Replay transaction feeds into client account balances",
    )
    parser.add_argument("--log-level", default=None,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Override the configured log level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_process = subparsers.add_parser("process", help="Process a transaction CSV")
    p_process.add_argument("input_file", help="The input file of transactions")

    p_generate = subparsers.add_parser("generate", help="Generate a random transaction CSV")
    p_generate.add_argument("--rows", type=int, default=None)
    p_generate.add_argument("--seed", type=int, default=None)
    p_generate.add_argument("--output", default=None, help="Output path")

    return parser


COMMAND_HANDLERS = {
    "process": cmd_process,
    "generate": cmd_generate,
}


def main(argv: Optional[list] = None) -> int:
    """Parse args and dispatch to handler. Returns the exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = COMMAND_HANDLERS[args.command]
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
