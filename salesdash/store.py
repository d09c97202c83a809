from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence

import pandas as pd

from salesdash.categories import CategoryRule, load_category_rules
from salesdash.config import Settings, get_settings
from salesdash.data import get_available_years, load_records_path, process_data
from salesdash.errors import IngestionError
from salesdash.mock import generate_mock_data


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetSnapshot:
    raw: pd.DataFrame
    processed: pd.DataFrame
    years: List[int]
    is_custom: bool
    generation: int
    source: str


class DatasetStore:
    """Holds the current working dataset; every change installs a whole new snapshot."""

    def __init__(self, rules: Optional[Sequence[CategoryRule]] = None) -> None:
        self._lock = threading.Lock()
        self._rules = list(rules) if rules is not None else None
        self._snapshot: Optional[DatasetSnapshot] = None
        self._generation = 0

    def _build(self, raw: pd.DataFrame, *, is_custom: bool, source: str) -> DatasetSnapshot:
        processed = process_data(raw, self._rules)
        return DatasetSnapshot(
            raw=raw.copy(),
            processed=processed,
            years=get_available_years(processed),
            is_custom=is_custom,
            generation=0,
            source=source,
        )

    def _install(self, snapshot: DatasetSnapshot) -> DatasetSnapshot:
        with self._lock:
            self._generation += 1
            installed = replace(snapshot, generation=self._generation)
            self._snapshot = installed
        logger.info("Installed dataset generation %d from %s (%d records)", installed.generation, installed.source, len(installed.processed))
        return installed

    def snapshot(self) -> Optional[DatasetSnapshot]:
        with self._lock:
            return self._snapshot

    def replace(self, raw: pd.DataFrame, source: str = "import") -> DatasetSnapshot:
        # Build fully before swapping so a failure leaves the current snapshot in place.
        return self._install(self._build(raw, is_custom=True, source=source))

    def load_mock(self, count: int = 1000, seed: Optional[int] = None) -> DatasetSnapshot:
        raw = generate_mock_data(count, seed=seed)
        return self._install(self._build(raw, is_custom=False, source="mock"))

    def reset(self, settings: Optional[Settings] = None) -> DatasetSnapshot:
        settings = settings or get_settings()
        return self.load_mock(settings.mock_rows, settings.mock_seed)


_store: Optional[DatasetStore] = None
_store_lock = threading.Lock()


def init_store(settings: Settings) -> DatasetStore:
    store = DatasetStore(load_category_rules(settings.rules_file))
    if settings.data_file is not None and settings.data_file.exists():
        try:
            store.replace(load_records_path(settings.data_file), source=settings.data_file.name)
            return store
        except IngestionError as exc:
            logger.warning("Data file %s rejected (%s); falling back to mock data", settings.data_file, exc)
    elif settings.data_file is not None:
        logger.warning("Data file %s not found; falling back to mock data", settings.data_file)
    store.reset(settings)
    return store


def get_store() -> DatasetStore:
    global _store
    with _store_lock:
        if _store is None:
            _store = init_store(get_settings())
        return _store


def current_snapshot() -> DatasetSnapshot:
    store = get_store()
    snapshot = store.snapshot()
    if snapshot is None:
        snapshot = store.reset()
    return snapshot
