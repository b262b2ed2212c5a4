"""
Data source resolution.

A chart's dataset comes from one of:
  - ``data`` or an array-valued ``dataSource`` on the property bag (static),
  - a callable ``dataSource(props)`` returning any of the other shapes,
  - a URL string, fetched through ``props["fetch"]`` or data_ops.fetch,
  - a pending operation (anything with ``add_done_callback``, normally a
    ``concurrent.futures.Future``).

Static data is read straight off the bag by ``prepare_data()``. Everything
else goes through ``load_data_source()``, which waits on the pending
operation, decodes the response (``response.json()`` when available),
extracts ``data``/``count`` and stores them in DataSourceState. Failures are
reported to ``onDataSourceError`` and never raised; the last good dataset
stays in place.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from concurrent.futures import CancelledError, Future
from dataclasses import dataclass
from typing import Any, Callable, Optional

import numpy as np
import pandas as pd

import config
from component.logging import log_error

from . import fetch as default_fetch

logger = logging.getLogger("chartbind")

_SEQUENCE_TYPES = (list, tuple, np.ndarray, pd.Series, pd.DataFrame)
_UNSET = object()


def is_sequence(value: Any) -> bool:
    """True for values usable as a dataset as-is."""
    return isinstance(value, _SEQUENCE_TYPES)


def is_pending(value: Any) -> bool:
    """True for pending operations (futures and future-likes)."""
    return callable(getattr(value, "add_done_callback", None))


def to_records(value: Any) -> list:
    """Normalize a sequence into a list; DataFrames become record dicts."""
    if isinstance(value, list):
        return value
    if isinstance(value, pd.DataFrame):
        return value.to_dict("records")
    if isinstance(value, (np.ndarray, pd.Series)):
        return value.tolist()
    return list(value)


def decode(response: Any) -> Any:
    """Return ``response.json()`` when the response offers it, else the response."""
    json_fn = getattr(response, "json", None)
    return json_fn() if callable(json_fn) else response


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def extract(payload: Any, get_info: Optional[Callable[[Any], Any]] = None) -> tuple[Any, Any]:
    """Pull (data, count) out of a decoded payload.

    ``get_info(payload)`` wins when given; a sequence payload is the data
    itself with no count; otherwise the payload's ``data`` and ``count``
    fields are used.

    Raises:
        TypeError: If the payload is neither a sequence nor a mapping.
    """
    if callable(get_info):
        info = get_info(payload)
        return _field(info, "data"), _field(info, "count")
    if is_sequence(payload):
        return payload, None
    if isinstance(payload, Mapping):
        return payload.get("data"), payload.get("count")
    raise TypeError(f"Cannot extract data from {type(payload).__name__} payload")


@dataclass
class DataSourceState:
    """Last successfully loaded dataset and item count."""

    default_data: Optional[list] = None
    default_data_source_count: Optional[int] = None


@dataclass(frozen=True)
class Outcome:
    """Settled result of a pending operation: a value or an error."""

    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: Any) -> "Outcome":
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> "Outcome":
        return cls(error=error)

    @classmethod
    def from_future(cls, future: Any) -> "Outcome":
        if future.cancelled():
            return cls.failure(CancelledError())
        error = future.exception()
        if error is not None:
            return cls.failure(error)
        return cls.success(future.result())


def _settled(value: Any) -> Future:
    future: Future = Future()
    future.set_result(value)
    return future


class DataSourceResolver:
    """Resolves property bags to datasets for one component.

    Args:
        state: Initial state (a fresh DataSourceState if omitted).
        on_state_change: Called with the state after each successful load.
        fetch: Fetch provider used when the bag has none.
        discard_stale: Drop completions of loads superseded by a newer load.
            Defaults to config.DISCARD_STALE_RESPONSES.
    """

    def __init__(
        self,
        state: Optional[DataSourceState] = None,
        on_state_change: Optional[Callable[[DataSourceState], Any]] = None,
        fetch: Optional[Callable[[str], Any]] = None,
        discard_stale: Optional[bool] = None,
    ):
        self.state = state if state is not None else DataSourceState()
        self.on_state_change = on_state_change
        self._fetch = fetch
        self.discard_stale = (
            config.DISCARD_STALE_RESPONSES if discard_stale is None else discard_stale
        )
        self._sequence = 0
        self._lock = threading.RLock()
        self.active = True

    # -- synchronous side ---------------------------------------------------

    @staticmethod
    def is_remote_data_source(props: Mapping[str, Any]) -> bool:
        """True if the bag's dataSource has to be loaded rather than read."""
        ds = props.get("dataSource")
        return ds is not None and not is_sequence(ds) and ds != ""

    @staticmethod
    def prepare_data_source(props: Mapping[str, Any]) -> Any:
        """The bag's dataSource, or None when it is static data."""
        ds = props.get("dataSource")
        return None if is_sequence(ds) else ds

    def prepare_data(self, props: Mapping[str, Any]) -> list:
        """Dataset for this cycle: static data, else cached data, else []."""
        data = None
        if is_sequence(props.get("data")):
            data = props["data"]
        if is_sequence(props.get("dataSource")):
            data = props["dataSource"]
        if data is None:
            data = self.state.default_data
        if not is_sequence(data):
            return []
        return to_records(data)

    def prepare_props(self, props: Mapping[str, Any]) -> dict:
        """Copy of *props* with ``data``/``dataSource`` normalized."""
        prepared = dict(props)
        prepared["data"] = self.prepare_data(props)
        prepared["dataSource"] = self.prepare_data_source(props)
        return prepared

    # -- asynchronous side --------------------------------------------------

    def load_data_source(self, props: Mapping[str, Any], data_source: Any = _UNSET) -> Optional[Future]:
        """Start resolving *data_source* (default: ``props["dataSource"]``).

        Returns:
            A Future settling with the final Outcome once every notification
            ran, or None when there was nothing to load.
        """
        if data_source is _UNSET:
            data_source = props.get("dataSource")

        if callable(data_source) and not is_pending(data_source):
            result = data_source(props)
            if is_sequence(result):
                self._store(result, None)
                return _settled(Outcome.success(result))
            return self.load_data_source(props, result)

        if isinstance(data_source, str):
            fetch = props.get("fetch") or self._fetch or default_fetch.fetch
            logger.debug(f"[DataSource] Fetching {data_source}")
            data_source = fetch(data_source)
            if not is_pending(data_source):
                # Synchronous fetch providers hand back the response itself
                data_source = _settled(data_source)

        if not is_pending(data_source):
            return None

        with self._lock:
            self._sequence += 1
            sequence = self._sequence
        done: Future = Future()

        def settle(future):
            outcome = Outcome.from_future(future)
            try:
                outcome = self._process(outcome, props, sequence)
            finally:
                done.set_result(outcome)

        data_source.add_done_callback(settle)
        return done

    def _process(self, outcome: Outcome, props: Mapping[str, Any], sequence: int) -> Outcome:
        if not self.active:
            logger.debug("[DataSource] Component inactive, ignoring settled load")
            return outcome

        on_response = props.get("onDataSourceResponse")
        if on_response is not None:
            self._notify(on_response, outcome, "onDataSourceResponse")
            if outcome.ok:
                self._loaded(props, outcome.value)
            return outcome

        if not outcome.ok:
            self._fail(props, outcome.error)
            return outcome

        try:
            payload = decode(outcome.value)
            on_success = props.get("onDataSourceSuccess")
            if on_success is not None:
                self._notify(on_success, payload, "onDataSourceSuccess")
            else:
                data, count = extract(payload, props.get("getDataSourceInfo"))
                self._store(data, count, sequence)
        except Exception as exc:
            self._fail(props, exc)
            return Outcome.failure(exc)

        self._loaded(props, outcome.value)
        return Outcome.success(payload)

    def _store(self, data: Any, count: Any, sequence: Optional[int] = None) -> None:
        # State is written under the lock; the state-change hook runs after it is released
        with self._lock:
            if self.discard_stale and sequence is not None and sequence != self._sequence:
                logger.debug(f"[DataSource] Dropping stale load #{sequence}")
                return
            self.state.default_data = to_records(data) if is_sequence(data) else data
            if count is not None:
                self.state.default_data_source_count = count
            n = len(self.state.default_data) if is_sequence(self.state.default_data) else 0
        logger.debug(f"[DataSource] Received {n} record(s), count={count}")
        if self.on_state_change is not None:
            self._notify(self.on_state_change, self.state, "state change")

    def _fail(self, props: Mapping[str, Any], error: BaseException) -> None:
        on_error = props.get("onDataSourceError")
        if on_error is not None:
            self._notify(on_error, error, "onDataSourceError")
        else:
            logger.warning(f"[DataSource] Load failed: {type(error).__name__}: {error}")

    def _loaded(self, props: Mapping[str, Any], response: Any) -> None:
        on_loaded = props.get("onDataSourceLoaded")
        if on_loaded is not None:
            self._notify(on_loaded, response, "onDataSourceLoaded")

    @staticmethod
    def _notify(hook: Callable[[Any], Any], value: Any, name: str) -> None:
        try:
            hook(value)
        except Exception as exc:
            log_error(f"[DataSource] {name} hook raised", exc=exc, context={"hook": name})
