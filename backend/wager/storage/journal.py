"""Append-only event journal in data/events.jsonl.

Each successful engine operation is written as one JSON object per line, so
the file doubles as an audit trail that survives state file rewrites.
"""

import logging

from wager.config import Settings
from wager.models import BetEvent
from wager.storage.state import get_data_dir

logger = logging.getLogger(__name__)

JOURNAL_FILENAME = "events.jsonl"


def log_events(events: list[BetEvent], settings: Settings | None = None) -> int:
    """Append events to the journal. Returns the number written."""
    if not events:
        return 0

    journal_path = get_data_dir(settings) / JOURNAL_FILENAME
    lines = "".join(event.model_dump_json() + "\n" for event in events)

    try:
        with open(journal_path, "a", encoding="utf-8") as f:
            f.write(lines)

        logger.info(f"Logged {len(events)} event(s) to {journal_path}")
        return len(events)

    except Exception as e:
        logger.error(f"Failed to log events to {journal_path}: {e}")
        raise


def read_events(bet_id: int | None = None, settings: Settings | None = None) -> list[BetEvent]:
    """Read journaled events in write order, optionally for one bet only."""
    journal_path = get_data_dir(settings) / JOURNAL_FILENAME
    if not journal_path.exists():
        return []

    events: list[BetEvent] = []
    with open(journal_path, "r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, 1):
            if not line.strip():
                continue
            try:
                event = BetEvent.model_validate_json(line)
            except ValueError as e:
                logger.error(f"Corrupt journal line {line_no} in {journal_path}: {e}")
                raise
            if bet_id is None or event.bet_id == bet_id:
                events.append(event)

    return events
