"""CSV adapters around the ledger.

Input rows look like ``type,client,tx,amount``; output rows look like
``client,available,held,total,locked``.
"""

import csv
from typing import Any, Dict, Iterable, Iterator, Optional, TextIO

import structlog

from models import AccountSnapshot
from services import Ledger

logger = structlog.get_logger(__name__)

SNAPSHOT_COLUMNS = ("client", "available", "held", "total", "locked")

# Key under which csv.DictReader collects surplus columns; it makes the row fail validation
EXTRA_COLUMNS_KEY = "extra"


def read_events(stream: TextIO, *, trim_whitespace: bool = True) -> Iterator[Dict[str, Any]]:
    """Yield one raw record per data row of a headed CSV stream.

    Missing trailing columns come back as empty strings. Surplus columns are
    kept under ``extra`` so that validation rejects the row.
    """
    reader = csv.DictReader(stream, restkey=EXTRA_COLUMNS_KEY, restval="")
    if reader.fieldnames is None:
        return
    if trim_whitespace:
        reader.fieldnames = [name.strip() for name in reader.fieldnames]

    for row in reader:
        if trim_whitespace:
            row = {
                key: value.strip() if isinstance(value, str) else value
                for key, value in row.items()
            }
        yield row


def replay_csv(
    stream: TextIO,
    ledger: Optional[Ledger] = None,
    *,
    trim_whitespace: bool = True,
) -> Ledger:
    """Apply every row of ``stream`` to ``ledger`` in file order."""
    if ledger is None:
        ledger = Ledger()

    rows = 0
    for row in read_events(stream, trim_whitespace=trim_whitespace):
        ledger.apply_row(row)
        rows += 1

    logger.info(
        "Replay finished",
        rows=rows,
        events_applied=ledger.stats.events_applied,
        events_dropped=ledger.stats.events_dropped,
        accounts=ledger.account_repo.count()
    )
    return ledger


def write_snapshot(snapshots: Iterable[AccountSnapshot], stream: TextIO) -> None:
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(SNAPSHOT_COLUMNS)
    for snapshot in snapshots:
        writer.writerow([
            snapshot.client,
            str(snapshot.available),
            str(snapshot.held),
            str(snapshot.total),
            "true" if snapshot.locked else "false",
        ])
