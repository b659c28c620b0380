"""
Append-only event store for experiment assignment and custom events.

Appends are idempotent on (experiment_id, entity_id, event_type, timestamp).
Queries page through the backend so aggregation never loads the whole
history at once. Events can be exported to parquet (or csv fallback) under
data/experiments/<experiment_id>/ and read back as DataFrames.
"""

import dataclasses
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

import pandas as pd

from .config import DEFAULT_DATA_DIR
from .schema import Event, ensure_utc
from .store import ExperimentStore

logger = logging.getLogger(__name__)

EVENT_COLUMNS = ["experiment_id", "entity_id", "event_type", "timestamp", "properties"]

try:
    import pyarrow  # noqa: F401
    _USE_PARQUET = True
except ImportError:
    _USE_PARQUET = False


class EventStore:
    """Idempotent append and paged query over an ExperimentStore."""

    def __init__(self, store: ExperimentStore, batch_size: int = 1000):
        self.store = store
        self.batch_size = batch_size

    def append(self, event: Event) -> bool:
        """
        Append an event.

        Returns:
            True if stored, False if an event with the same natural key
            already existed (duplicate ignored).
        """
        if event.timestamp.tzinfo != timezone.utc:
            event = dataclasses.replace(event, timestamp=ensure_utc(event.timestamp))
        stored = self.store.append_event(event)
        if not stored:
            logger.debug(
                f"Duplicate event ignored: {event.experiment_id}/{event.entity_id}/"
                f"{event.event_type}@{event.timestamp.isoformat()}"
            )
        return stored

    def query(
        self,
        experiment_id: str,
        event_type: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        batch_size: Optional[int] = None,
    ) -> Iterator[Event]:
        """
        Stream events for an experiment, optionally filtered by type and
        an inclusive time window.
        """
        start = ensure_utc(start) if start is not None else None
        end = ensure_utc(end) if end is not None else None
        size = batch_size or self.batch_size
        offset = 0
        while True:
            page = self.store.read_events(experiment_id, offset, size)
            if not page:
                return
            offset += len(page)
            for evt in page:
                if event_type is not None and evt.event_type != event_type:
                    continue
                if start is not None and evt.timestamp < start:
                    continue
                if end is not None and evt.timestamp > end:
                    continue
                yield evt

    def count(self, experiment_id: str) -> int:
        return self.store.count_events(experiment_id)

    def to_frame(self, experiment_id: str, event_type: Optional[str] = None) -> pd.DataFrame:
        """Events as a DataFrame with EVENT_COLUMNS."""
        rows = [_event_to_row(e) for e in self.query(experiment_id, event_type=event_type)]
        return pd.DataFrame(rows, columns=EVENT_COLUMNS)


def _event_to_row(evt: Event) -> dict:
    return {
        "experiment_id": evt.experiment_id,
        "entity_id": evt.entity_id,
        "event_type": evt.event_type,
        "timestamp": evt.timestamp,
        "properties": json.dumps(evt.properties, default=str, sort_keys=True) if evt.properties else "",
    }


def _ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


def _events_path(experiment_id: str, base_dir: str = DEFAULT_DATA_DIR) -> Path:
    ext = "parquet" if _USE_PARQUET else "csv"
    return Path(base_dir) / experiment_id / f"events.{ext}"


def _write_table(df: pd.DataFrame, path: Path) -> None:
    if path.suffix == ".parquet":
        df.to_parquet(path, index=False)
    else:
        df.to_csv(path, index=False)


def export_events(
    events: EventStore,
    experiment_id: str,
    base_dir: str = DEFAULT_DATA_DIR,
) -> Path:
    """
    Write every event of an experiment to the on-disk table.

    Args:
        events: EventStore to read from
        experiment_id: Experiment identifier
        base_dir: Base directory for experiment data

    Returns:
        Path of the written file
    """
    path = _events_path(experiment_id, base_dir)
    _ensure_dir(path.parent)
    df = events.to_frame(experiment_id)
    _write_table(df, path)
    logger.info(f"Exported {len(df)} events to {path}")
    return path


def read_events(
    experiment_id: str,
    event_type: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    base_dir: str = DEFAULT_DATA_DIR,
) -> pd.DataFrame:
    """
    Read exported events for an experiment, optionally filtered.

    Returns:
        DataFrame with EVENT_COLUMNS (empty if nothing was exported)
    """
    path = _events_path(experiment_id, base_dir)
    if not path.exists():
        return pd.DataFrame(columns=EVENT_COLUMNS)
    if path.suffix == ".parquet":
        df = pd.read_parquet(path)
    else:
        df = pd.read_csv(path, dtype={"entity_id": str, "properties": str}, keep_default_na=False)
    if df.empty:
        return df
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    if event_type:
        df = df[df["event_type"] == event_type]
    if start_date:
        df = df[df["timestamp"] >= pd.Timestamp(ensure_utc(start_date))]
    if end_date:
        df = df[df["timestamp"] <= pd.Timestamp(ensure_utc(end_date))]
    return df.reset_index(drop=True)


def import_events(
    df: pd.DataFrame,
    events: EventStore,
) -> int:
    """
    Replay an events table into an EventStore.

    Rows already present are dropped by the natural-key check.

    Returns:
        Number of events newly stored
    """
    stored = 0
    for row in df.itertuples(index=False):
        raw = row.properties if isinstance(row.properties, str) else ""
        evt = Event(
            experiment_id=str(row.experiment_id),
            entity_id=str(row.entity_id),
            event_type=str(row.event_type),
            properties=json.loads(raw) if raw else {},
            timestamp=pd.Timestamp(row.timestamp).to_pydatetime(),
        )
        if events.append(evt):
            stored += 1
    logger.info(f"Imported {stored} of {len(df)} events")
    return stored
