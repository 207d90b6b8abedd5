"""
Adaptive Learning Store

Durable record of strategy and selector outcomes. Aggregates live in memory
behind a lock and are the only shared mutable state of the healing core. Pending
outcomes are flushed to SQLite in batches; each batch is written in a single
transaction so a failed write never leaves previously durable data half-updated.
"""

import atexit
import copy
import json
import os
import sqlite3
import tempfile
import threading
import logging
from collections import deque
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Tuple

from ..core.exceptions import LearningStoreError
from ..core.metrics import get_metrics_collector
from ..core.models import SelectorReliability, StrategyOutcomeRecord

logger = logging.getLogger(__name__)

SELECTOR_SCOPE = "selector"
STRATEGY_SCOPE = "strategy"

EXPORT_FORMAT_VERSION = 1


class AdaptiveLearningStore:
    """
    Outcome store with synchronized access.

    Only ``record_outcome`` mutates state. Readers get copies or derived values,
    never the underlying maps.
    """

    def __init__(self, db_path: Optional[str] = "./data/healing_learning.db",
                 flush_batch_size: int = 10, history_limit: int = 5000,
                 recent_window_days: int = 7, register_atexit: bool = True):
        """
        Initialize the store and reload any previously persisted state.

        Args:
            db_path: SQLite database file; ``None`` keeps the store in memory only
            flush_batch_size: Pending outcomes that trigger an automatic flush
            history_limit: Outcome records kept in memory for windowed rates
            recent_window_days: Default window for recent success rates
            register_atexit: Flush pending outcomes on normal interpreter exit

        Raises:
            LearningStoreError: If the database cannot be opened or reloaded
        """
        self.db_path = db_path
        self.flush_batch_size = max(1, flush_batch_size)
        self.recent_window = timedelta(days=recent_window_days)

        self._lock = threading.RLock()
        self._flush_lock = threading.Lock()

        self._aggregates: Dict[Tuple[str, str], SelectorReliability] = {}
        self._last_used: Dict[Tuple[str, str], datetime] = {}
        self._history: Deque[StrategyOutcomeRecord] = deque(maxlen=history_limit)
        self._pending: List[StrategyOutcomeRecord] = []
        self._closed = False

        if self.db_path:
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._init_database()
            self._load()

        self._atexit_registered = register_atexit
        if register_atexit:
            atexit.register(self._flush_at_exit)

        logger.info(f"AdaptiveLearningStore initialized with database: {db_path or 'memory'}")

    # ------------------------------------------------------------------ writes

    def record_outcome(self, selector: str, strategy: str, success: bool,
                       execution_time: float, error_kind: Optional[str] = None,
                       timestamp: Optional[datetime] = None) -> StrategyOutcomeRecord:
        """
        Append one outcome and fold it into the selector and strategy aggregates.

        Args:
            selector: Locator that was attempted
            strategy: Strategy that produced the locator
            success: Whether the attempt succeeded
            execution_time: Attempt duration in milliseconds
            error_kind: Failure kind of an unsuccessful attempt
            timestamp: Outcome time, defaults to now

        Returns:
            The appended StrategyOutcomeRecord

        Raises:
            ValueError: If selector or strategy is empty
        """
        if not selector or not strategy:
            raise ValueError("selector and strategy are required to record an outcome")

        record = StrategyOutcomeRecord(
            selector=selector,
            strategy=strategy,
            success=bool(success),
            execution_time=max(0.0, float(execution_time)),
            error_kind=None if success else error_kind,
            timestamp=timestamp or datetime.now(),
        )

        with self._lock:
            for key in ((SELECTOR_SCOPE, selector), (STRATEGY_SCOPE, strategy)):
                aggregate = self._aggregates.setdefault(key, SelectorReliability())
                aggregate.apply(record.success, record.execution_time, record.error_kind)
                previous = self._last_used.get(key)
                if previous is None or record.timestamp > previous:
                    self._last_used[key] = record.timestamp
            self._history.append(record)
            self._pending.append(record)
            should_flush = bool(self.db_path) and len(self._pending) >= self.flush_batch_size

        logger.debug(f"Recorded {'success' if record.success else 'failure'} for {strategy}: {selector}")

        if should_flush:
            self.flush()

        return record

    def flush(self, raise_on_error: bool = False) -> bool:
        """
        Write pending outcomes and their aggregates in one transaction.

        A failed batch stays pending and is retried by the next flush.

        Args:
            raise_on_error: Raise LearningStoreError instead of returning False

        Returns:
            True if nothing was pending or the batch was written
        """
        if not self.db_path:
            with self._lock:
                self._pending.clear()
            return True

        with self._flush_lock:
            with self._lock:
                batch = self._pending
                self._pending = []
                keys = {(SELECTOR_SCOPE, r.selector) for r in batch}
                keys |= {(STRATEGY_SCOPE, r.strategy) for r in batch}
                rows = [
                    (scope, key, agg.attempts, agg.successes, agg.avg_execution_time,
                     json.dumps(agg.error_counts, sort_keys=True),
                     self._last_used[(scope, key)].isoformat())
                    for (scope, key), agg in sorted(
                        (k, self._aggregates[k]) for k in keys
                    )
                ]

            if not batch:
                return True

            try:
                self._write_batch(batch, rows)
            except sqlite3.Error as e:
                with self._lock:
                    self._pending = batch + self._pending
                get_metrics_collector().increment_counter("learning_persistence_failures")
                logger.error(f"Failed to persist {len(batch)} outcomes: {e}")
                if raise_on_error:
                    raise LearningStoreError(f"Failed to persist learning outcomes: {e}") from e
                return False

        logger.info(f"Persisted {len(batch)} outcomes ({len(rows)} aggregates)")
        return True

    def close(self):
        """Flush pending outcomes and stop accepting the exit hook."""
        if self._closed:
            return
        self.flush(raise_on_error=False)
        if self._atexit_registered:
            atexit.unregister(self._flush_at_exit)
        self._closed = True

    # ------------------------------------------------------------------- reads

    def success_rate(self, strategy: Optional[str] = None, selector: Optional[str] = None,
                     window: Optional[timedelta] = None, now: Optional[datetime] = None) -> float:
        """
        Success rate for a strategy or a selector, 0.5 when nothing matches.

        With a single key and no window the full aggregate is used. A window, or
        both keys together, are answered from the in-memory outcome history.

        Raises:
            ValueError: If neither strategy nor selector is given
        """
        if strategy is None and selector is None:
            raise ValueError("success_rate needs a strategy or a selector")

        with self._lock:
            if window is None and (strategy is None or selector is None):
                key = (STRATEGY_SCOPE, strategy) if strategy is not None else (SELECTOR_SCOPE, selector)
                aggregate = self._aggregates.get(key)
                return aggregate.success_rate if aggregate else 0.5

            cutoff = (now or datetime.now()) - window if window is not None else None
            matching = [
                r for r in self._history
                if (strategy is None or r.strategy == strategy)
                and (selector is None or r.selector == selector)
                and (cutoff is None or r.timestamp >= cutoff)
            ]

        if not matching:
            return 0.5
        return sum(1 for r in matching if r.success) / len(matching)

    def get_reliability(self, selector: str) -> Optional[SelectorReliability]:
        """Copy of the aggregate for a selector, or None if unseen."""
        with self._lock:
            aggregate = self._aggregates.get((SELECTOR_SCOPE, selector))
            return copy.deepcopy(aggregate) if aggregate else None

    def get_strategy_reliability(self, strategy: str) -> Optional[SelectorReliability]:
        with self._lock:
            aggregate = self._aggregates.get((STRATEGY_SCOPE, strategy))
            return copy.deepcopy(aggregate) if aggregate else None

    def selector_reliability(self, selector: str) -> float:
        """Success rate of a selector, 0.5 if unseen."""
        return self.success_rate(selector=selector)

    def strategy_usage_share(self, strategy: str) -> float:
        """Share of all recorded attempts made with the given strategy."""
        with self._lock:
            total = sum(a.attempts for (scope, _), a in self._aggregates.items() if scope == STRATEGY_SCOPE)
            aggregate = self._aggregates.get((STRATEGY_SCOPE, strategy))
            if not total or aggregate is None:
                return 0.0
            return aggregate.attempts / total

    def history_for(self, strategy: Optional[str] = None,
                    selector: Optional[str] = None) -> List[StrategyOutcomeRecord]:
        """Outcome records matching the strategy or the selector, oldest first."""
        with self._lock:
            return [
                r for r in self._history
                if (strategy is not None and r.strategy == strategy)
                or (selector is not None and r.selector == selector)
            ]

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def strategy_rankings(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """
        Strategies ordered by adaptive score.

        The adaptive score is 0.7 x success rate + 0.3 x recency, where recency
        decays linearly from 1.0 to 0.1 over thirty days since last use.
        """
        now = now or datetime.now()
        rankings = []

        with self._lock:
            for (scope, name), aggregate in self._aggregates.items():
                if scope != STRATEGY_SCOPE:
                    continue
                last_used = self._last_used.get((scope, name), now)
                days = max(0.0, (now - last_used).total_seconds() / 86400)
                recency = max(0.1, 1 - days / 30)
                rankings.append({
                    "strategy": name,
                    "attempts": aggregate.attempts,
                    "success_rate": aggregate.success_rate,
                    "recency": recency,
                    "adaptive_score": aggregate.success_rate * 0.7 + recency * 0.3,
                    "last_used": last_used.isoformat(),
                })

        rankings.sort(key=lambda r: (-r["adaptive_score"], r["strategy"]))
        return rankings

    def analytics(self) -> Dict[str, Any]:
        """Summary of what the store has learned."""
        with self._lock:
            selectors = {k: a for (s, k), a in self._aggregates.items() if s == SELECTOR_SCOPE}
            strategies = {k: a for (s, k), a in self._aggregates.items() if s == STRATEGY_SCOPE}
            pending = len(self._pending)

            reliable = [k for k, a in selectors.items() if a.attempts >= 3 and a.success_rate >= 0.8]
            rates = [a.success_rate for a in selectors.values()]

            return {
                "total_outcomes": sum(a.attempts for a in strategies.values()),
                "selector_count": len(selectors),
                "reliable_selectors": len(reliable),
                "reliable_selector_share": len(reliable) / len(selectors) if selectors else 0.0,
                "average_success_rate": sum(rates) / len(rates) if rates else 0.0,
                "strategies": {
                    name: {
                        "attempts": a.attempts,
                        "success_rate": a.success_rate,
                        "avg_execution_time": a.avg_execution_time,
                    }
                    for name, a in sorted(strategies.items())
                },
                "pending_writes": pending,
            }

    def export_json(self, path: str) -> Path:
        """
        Write a human-diffable JSON export of all aggregates.

        The file is written next to its destination and atomically renamed over it.
        """
        with self._lock:
            data = {
                "version": EXPORT_FORMAT_VERSION,
                "exported_at": datetime.now().isoformat(),
                "selectors": {
                    key: agg.to_dict()
                    for (scope, key), agg in sorted(self._aggregates.items()) if scope == SELECTOR_SCOPE
                },
                "strategies": {
                    key: agg.to_dict()
                    for (scope, key), agg in sorted(self._aggregates.items()) if scope == STRATEGY_SCOPE
                },
            }

        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, target)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

        logger.info(f"Exported learning store to {target}")
        return target

    # ------------------------------------------------------------- persistence

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, timeout=10)

    def _init_database(self):
        """Create database schema if it doesn't exist."""
        try:
            conn = self._connect()
            try:
                with conn:
                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS outcomes (
                            id INTEGER PRIMARY KEY AUTOINCREMENT,
                            selector TEXT NOT NULL,
                            strategy TEXT NOT NULL,
                            success INTEGER NOT NULL,
                            execution_time REAL NOT NULL,
                            error_kind TEXT,
                            timestamp TEXT NOT NULL
                        )
                    """)
                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS reliability (
                            scope TEXT NOT NULL,
                            key TEXT NOT NULL,
                            attempts INTEGER NOT NULL,
                            successes INTEGER NOT NULL,
                            avg_execution_time REAL NOT NULL,
                            error_counts TEXT NOT NULL,
                            last_used TEXT NOT NULL,
                            PRIMARY KEY (scope, key)
                        )
                    """)
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise LearningStoreError(f"Cannot initialize learning store at {self.db_path}: {e}") from e

    def _load(self):
        """Reload all aggregates and the most recent outcome history."""
        try:
            conn = self._connect()
            try:
                aggregate_rows = conn.execute(
                    "SELECT scope, key, attempts, successes, avg_execution_time, error_counts, last_used "
                    "FROM reliability"
                ).fetchall()
                history_rows = conn.execute(
                    "SELECT selector, strategy, success, execution_time, error_kind, timestamp "
                    "FROM outcomes ORDER BY id DESC LIMIT ?",
                    (self._history.maxlen,)
                ).fetchall()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise LearningStoreError(f"Cannot reload learning store from {self.db_path}: {e}") from e

        with self._lock:
            for scope, key, attempts, successes, avg_time, error_counts, last_used in aggregate_rows:
                self._aggregates[(scope, key)] = SelectorReliability(
                    attempts=attempts,
                    successes=successes,
                    avg_execution_time=avg_time,
                    error_counts=json.loads(error_counts),
                )
                self._last_used[(scope, key)] = datetime.fromisoformat(last_used)

            for selector, strategy, success, exec_time, error_kind, timestamp in reversed(history_rows):
                self._history.append(StrategyOutcomeRecord(
                    selector=selector,
                    strategy=strategy,
                    success=bool(success),
                    execution_time=exec_time,
                    error_kind=error_kind,
                    timestamp=datetime.fromisoformat(timestamp),
                ))

        logger.info(f"Reloaded {len(aggregate_rows)} aggregates and {len(history_rows)} outcomes")

    def _write_batch(self, batch: List[StrategyOutcomeRecord], rows: List[tuple]):
        conn = self._connect()
        try:
            with conn:
                conn.executemany(
                    "INSERT INTO outcomes (selector, strategy, success, execution_time, error_kind, timestamp) "
                    "VALUES (?, ?, ?, ?, ?, ?)",
                    [
                        (r.selector, r.strategy, int(r.success), r.execution_time,
                         r.error_kind, r.timestamp.isoformat())
                        for r in batch
                    ]
                )
                conn.executemany("""
                    INSERT INTO reliability (scope, key, attempts, successes, avg_execution_time,
                                             error_counts, last_used)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(scope, key) DO UPDATE SET
                        attempts = excluded.attempts,
                        successes = excluded.successes,
                        avg_execution_time = excluded.avg_execution_time,
                        error_counts = excluded.error_counts,
                        last_used = excluded.last_used
                """, rows)
        finally:
            conn.close()

    def _flush_at_exit(self):
        if self.pending_count:
            self.flush(raise_on_error=False)
