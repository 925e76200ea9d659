"""
CSV Adapter Module

Reads transaction rows into raw records and writes account snapshots back
out. Cells are trimmed and rows may leave out the trailing amount column.
Rows that cannot be parsed are logged and skipped; they never abort a run.
"""

import csv
from typing import Dict, Iterable, Iterator, List, Optional, TextIO

from pydantic import ValidationError

from .accounts import AccountSnapshot
from .errors import MalformedRecordError
from .logging_config import get_logger, log_action
from .transactions import TransactionRecord


INPUT_FIELDS = ["type", "client", "tx", "amount"]
OUTPUT_FIELDS = ["client", "available", "held", "total", "locked"]


def parse_row(header: List[str], row: List[str]) -> TransactionRecord:
    """
    Build a raw record from one CSV row

    Raises:
        MalformedRecordError: If the row does not describe a valid record
    """
    cells: Dict[str, str] = {}
    for name, value in zip(header, row):
        try:
            value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise MalformedRecordError(f"Undecodable bytes in CSV record {row!r}") from e
        cells[name] = value.strip()

    try:
        return TransactionRecord.model_validate(cells)
    except ValidationError as e:
        raise MalformedRecordError(
            f"Malformed CSV record {row!r}: {e.error_count()} validation error(s)"
        ) from e


class RecordReader:
    """
    Iterates the records of a transaction CSV stream.
    Counts the rows it had to skip in `malformed`.
    """

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.malformed = 0
        self.logger = get_logger("tx_engine.csv_io")

    def __iter__(self) -> Iterator[TransactionRecord]:
        reader = csv.reader(self.stream)
        header: Optional[List[str]] = None

        while True:
            try:
                row = next(reader)
            except StopIteration:
                return
            except csv.Error as e:
                # the reader resumes on the following line
                self._skip(reader.line_num, None, e)
                continue

            if not row or all(not cell.strip() for cell in row):
                continue

            if header is None:
                header = [cell.strip() for cell in row]
                continue

            try:
                yield parse_row(header, row)
            except MalformedRecordError as e:
                self._skip(reader.line_num, row, e.__cause__ or e)

    def _skip(self, line_num: int, row: Optional[List[str]], error: Exception) -> None:
        self.malformed += 1
        log_action(
            self.logger, "warning", "Malformed CSV record",
            action="parse_record", resource=f"line:{line_num}",
            extra={"row": row, "error": str(error)}
        )


def open_records(path, encoding: str = "utf-8") -> TextIO:
    """
    Open a transaction CSV file for reading.
    Bytes that do not decode are kept as surrogates so the row holding
    them is skipped as malformed instead of failing the whole read.
    """
    return open(path, newline="", encoding=encoding, errors="surrogateescape")


def read_records(stream: TextIO) -> Iterator[TransactionRecord]:
    """Yield every well-formed record of a transaction CSV stream"""
    return iter(RecordReader(stream))


def write_accounts(snapshots: Iterable[AccountSnapshot], stream: TextIO) -> int:
    """
    Write account snapshots as CSV

    Returns:
        Number of account rows written
    """
    writer = csv.DictWriter(stream, fieldnames=OUTPUT_FIELDS, lineterminator="\n")
    writer.writeheader()

    count = 0
    for snapshot in snapshots:
        writer.writerow(snapshot.to_row())
        count += 1
    return count


def write_records(records: Iterable[TransactionRecord], stream: TextIO) -> int:
    """
    Write raw records in the input CSV format

    Returns:
        Number of record rows written
    """
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(INPUT_FIELDS)

    count = 0
    for record in records:
        amount = "" if record.amount is None else f"{record.amount:f}"
        writer.writerow([
            record.transaction_type.value,
            record.client_id,
            record.transaction_id,
            amount
        ])
        count += 1
    return count
