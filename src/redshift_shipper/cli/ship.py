"""
Handlers for the ``ship`` and ``check`` commands.

``ship`` plays the buffering host for a single flush: every input line is a
JSON record, formatted through the output's ``format()`` hook into one chunk
that is handed to ``write()``.
"""

import json
import sys
import time
from contextlib import contextmanager
from typing import IO, Iterator

from botocore.exceptions import BotoCoreError, ClientError

from redshift_shipper.config.settings import ShipperSettings
from redshift_shipper.io.chunk import BufferChunk
from redshift_shipper.io.exceptions import KeyGenerationError, SchemaFetchError
from redshift_shipper.io.loader import LoadError
from redshift_shipper.orchestration import RedshiftOutput
from redshift_shipper.utils.logging import get_logger

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FLUSH_FAILED = 1
EXIT_CONFIG_ERROR = 2


@contextmanager
def _open_input(path: str) -> Iterator[IO[str]]:
    if path == "-":
        yield sys.stdin
        return
    with open(path, "r", encoding="utf-8") as f:
        yield f


def read_chunk(output: RedshiftOutput, stream: IO[str], tag: str) -> BufferChunk:
    """Format every JSON object line of ``stream`` into a new chunk."""
    chunk = BufferChunk()
    for line_no, line in enumerate(stream, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("cli.input.invalid_line", line_no=line_no, error=str(e))
            continue
        if not isinstance(record, dict):
            logger.warning(
                "cli.input.not_an_object",
                line_no=line_no,
                type=type(record).__name__,
            )
            continue
        chunk.append(output.format(tag, time.time(), record))
    return chunk


def run_ship(settings: ShipperSettings, input_path: str, tag: str) -> int:
    output = RedshiftOutput(settings)

    try:
        with _open_input(input_path) as stream:
            chunk = read_chunk(output, stream, tag)
    except (OSError, UnicodeDecodeError) as e:
        logger.error("cli.input.unreadable", input_path=input_path, error=str(e))
        print(f"Cannot read input {input_path}: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    output.start()
    try:
        result = output.flush(chunk)
    except LoadError as e:
        kind = "retryable" if e.retryable else "fatal"
        print(f"Load failed ({kind}): {e}", file=sys.stderr)
        return EXIT_FLUSH_FAILED
    except (SchemaFetchError, KeyGenerationError, BotoCoreError, ClientError) as e:
        print(f"Flush failed: {e}", file=sys.stderr)
        return EXIT_FLUSH_FAILED

    if result.loaded:
        print(f"Loaded {result.rows} records from {result.s3_uri}")
    else:
        print(f"Skipped: {result.reason}")
    return EXIT_OK


def run_check(settings: ShipperSettings) -> int:
    output = RedshiftOutput(settings)
    try:
        columns = output.schema_fetcher.fetch()
    except SchemaFetchError as e:
        print(f"Schema fetch failed: {e}", file=sys.stderr)
        return EXIT_FLUSH_FAILED

    if not columns:
        print(f"Table {settings.redshift_tablename} not found or has no columns")
        return EXIT_FLUSH_FAILED

    print(f"Table {settings.redshift_tablename} ({len(columns)} columns):")
    for position, column in enumerate(columns, start=1):
        print(f"  {position:>3}  {column}")
    return EXIT_OK
