"""
Tests for data_ops.resolver: data source resolution and notifications.

Futures are driven by hand; no network access.
"""

from concurrent.futures import Future
from unittest import mock

import numpy as np
import pandas as pd
import pytest

from data_ops.resolver import (
    DataSourceResolver,
    DataSourceState,
    Outcome,
    decode,
    extract,
    is_pending,
    is_sequence,
    to_records,
)


URL = "https://x/data.json"
WAIT = 5  # seconds; a settled load that never completes fails instead of hanging


class StubResponse:
    def __init__(self, payload):
        self.payload = payload

    def json(self):
        return self.payload


class BrokenResponse:
    def json(self):
        raise ValueError("not json")


def resolved(value):
    f = Future()
    f.set_result(value)
    return f


def rejected(error):
    f = Future()
    f.set_exception(error)
    return f


@pytest.fixture
def resolver():
    return DataSourceResolver(discard_stale=False)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestHelpers:
    def test_is_sequence(self):
        assert is_sequence([1])
        assert is_sequence((1,))
        assert is_sequence(np.array([1]))
        assert is_sequence(pd.DataFrame({"a": [1]}))
        assert not is_sequence("abc")
        assert not is_sequence({"data": []})
        assert not is_sequence(None)

    def test_is_pending(self):
        assert is_pending(Future())
        assert not is_pending([1])
        assert not is_pending(URL)

    def test_to_records(self):
        lst = [1, 2]
        assert to_records(lst) is lst
        assert to_records((1, 2)) == [1, 2]
        assert to_records(np.array([1, 2])) == [1, 2]
        assert to_records(pd.DataFrame({"a": [1, 2]})) == [{"a": 1}, {"a": 2}]

    def test_decode(self):
        assert decode(StubResponse({"a": 1})) == {"a": 1}
        assert decode({"a": 1}) == {"a": 1}

    def test_extract_mapping(self):
        assert extract({"data": [1], "count": 9}) == ([1], 9)
        assert extract({"data": [1]}) == ([1], None)

    def test_extract_sequence(self):
        assert extract([1, 2]) == ([1, 2], None)

    def test_extract_info_fn_wins(self):
        info = lambda p: {"data": p["rows"], "count": p["total"]}
        assert extract({"rows": [3], "total": 1, "data": [9]}, info) == ([3], 1)

    def test_extract_bad_payload(self):
        with pytest.raises(TypeError):
            extract("plain text")

    def test_outcome_from_future(self):
        assert Outcome.from_future(resolved(3)) == Outcome.success(3)
        err = RuntimeError("x")
        outcome = Outcome.from_future(rejected(err))
        assert not outcome.ok
        assert outcome.error is err

    def test_outcome_from_cancelled_future(self):
        f = Future()
        f.cancel()
        assert not Outcome.from_future(f).ok


# ---------------------------------------------------------------------------
# prepare_data
# ---------------------------------------------------------------------------

class TestPrepareData:
    def test_array_data_source_wins_over_cache(self, resolver):
        resolver.state.default_data = [9, 9]
        ds = [1, 2, 3]
        assert resolver.prepare_data({"dataSource": ds}) == ds

    def test_data_used(self, resolver):
        assert resolver.prepare_data({"data": [1]}) == [1]

    def test_array_data_source_over_data(self, resolver):
        assert resolver.prepare_data({"data": [1], "dataSource": [2]}) == [2]

    def test_cached_data_used_when_nothing_static(self, resolver):
        resolver.state.default_data = [4, 5]
        props = {"dataSource": URL}
        assert resolver.prepare_data(props) == [4, 5]
        assert resolver.prepare_data(props) == [4, 5]

    def test_empty_when_nothing(self, resolver):
        assert resolver.prepare_data({}) == []

    def test_non_sequence_cache_collapses(self, resolver):
        resolver.state.default_data = None
        assert resolver.prepare_data({"data": "nope"}) == []

    def test_dataframe_data(self, resolver):
        df = pd.DataFrame({"x": [1, 2], "y": [3, 4]})
        assert resolver.prepare_data({"data": df}) == [{"x": 1, "y": 3}, {"x": 2, "y": 4}]

    def test_prepare_props(self, resolver):
        props = {"type": "lineChart", "dataSource": [1]}
        prepared = resolver.prepare_props(props)
        assert prepared["data"] == [1]
        assert prepared["dataSource"] is None
        assert props["dataSource"] == [1]

    def test_is_remote(self, resolver):
        assert resolver.is_remote_data_source({"dataSource": URL})
        assert resolver.is_remote_data_source({"dataSource": lambda p: [1]})
        assert resolver.is_remote_data_source({"dataSource": Future()})
        assert not resolver.is_remote_data_source({"dataSource": [1]})
        assert not resolver.is_remote_data_source({"dataSource": ""})
        assert not resolver.is_remote_data_source({})


# ---------------------------------------------------------------------------
# load_data_source
# ---------------------------------------------------------------------------

class TestLoad:
    def test_fetch_success_updates_state(self, resolver):
        on_error = mock.Mock()
        fetch = mock.Mock(return_value=resolved(StubResponse({"data": [1, 2, 3], "count": 3})))
        props = {"dataSource": URL, "fetch": fetch, "onDataSourceError": on_error}
        done = resolver.load_data_source(props)
        assert done.result(timeout=WAIT).ok
        fetch.assert_called_once_with(URL)
        assert resolver.state.default_data == [1, 2, 3]
        assert resolver.state.default_data_source_count == 3
        on_error.assert_not_called()

    def test_fetch_failure_reports_and_keeps_data(self, resolver):
        resolver.state.default_data = ["old"]
        reason = ConnectionError("boom")
        on_error = mock.Mock()
        props = {"dataSource": URL, "fetch": lambda url: rejected(reason), "onDataSourceError": on_error}
        done = resolver.load_data_source(props)
        assert not done.result(timeout=WAIT).ok
        on_error.assert_called_once_with(reason)
        assert resolver.state.default_data == ["old"]

    def test_failure_without_hook_is_swallowed(self, resolver):
        resolver.state.default_data = ["old"]
        props = {"dataSource": URL, "fetch": lambda url: rejected(RuntimeError("x"))}
        done = resolver.load_data_source(props)
        assert not done.result(timeout=WAIT).ok
        assert resolver.state.default_data == ["old"]

    def test_count_absent_keeps_previous_count(self, resolver):
        resolver.state.default_data_source_count = 7
        props = {"dataSource": resolved([1, 2])}
        resolver.load_data_source(props).result(timeout=WAIT)
        assert resolver.state.default_data == [1, 2]
        assert resolver.state.default_data_source_count == 7

    def test_pending_settles_later(self, resolver):
        pending = Future()
        done = resolver.load_data_source({"dataSource": pending})
        assert not done.done()
        assert resolver.state.default_data is None
        pending.set_result({"data": ["a"]})
        assert done.done()
        assert resolver.state.default_data == ["a"]

    def test_resolver_fetch_used_when_bag_has_none(self):
        fetch = mock.Mock(return_value=resolved([5]))
        resolver = DataSourceResolver(fetch=fetch, discard_stale=False)
        resolver.load_data_source({"dataSource": URL}).result(timeout=WAIT)
        fetch.assert_called_once_with(URL)
        assert resolver.state.default_data == [5]

    def test_default_fetch_provider(self, resolver):
        with mock.patch("data_ops.resolver.default_fetch.fetch", return_value=resolved([8])) as fetch:
            resolver.load_data_source({"dataSource": URL}).result(timeout=WAIT)
        fetch.assert_called_once_with(URL)
        assert resolver.state.default_data == [8]

    def test_synchronous_fetch_result(self, resolver):
        props = {"dataSource": URL, "fetch": lambda url: StubResponse({"data": [1]})}
        resolver.load_data_source(props).result(timeout=WAIT)
        assert resolver.state.default_data == [1]

    def test_callable_returning_url(self, resolver):
        calls = []

        def source(p):
            calls.append(p)
            return URL

        props = {"dataSource": source, "fetch": lambda url: resolved([url])}
        resolver.load_data_source(props).result(timeout=WAIT)
        assert calls == [props]
        assert resolver.state.default_data == [URL]

    def test_mock_callable_is_not_pending(self):
        source = mock.Mock(spec=lambda p: None, return_value=URL)
        assert not is_pending(source)

    def test_callable_returning_array(self, resolver):
        props = {"dataSource": lambda p: [1, 2]}
        done = resolver.load_data_source(props)
        assert done.result(timeout=WAIT).ok
        assert resolver.state.default_data == [1, 2]

    def test_callable_returning_none_is_noop(self, resolver):
        assert resolver.load_data_source({"dataSource": lambda p: None}) is None
        assert resolver.state == DataSourceState()

    def test_static_array_is_noop(self, resolver):
        on_state = mock.Mock()
        resolver.on_state_change = on_state
        props = {"dataSource": [1, 2]}
        assert resolver.load_data_source(props) is None
        assert resolver.load_data_source(props) is None
        assert resolver.state.default_data is None
        on_state.assert_not_called()

    def test_none_is_noop(self, resolver):
        assert resolver.load_data_source({}) is None
        assert resolver.load_data_source({}, 42) is None

    def test_explicit_data_source_argument(self, resolver):
        resolver.load_data_source({"dataSource": URL}, resolved([3])).result(timeout=WAIT)
        assert resolver.state.default_data == [3]

    def test_decode_error_goes_to_error_hook(self, resolver):
        on_error = mock.Mock()
        props = {"dataSource": resolved(BrokenResponse()), "onDataSourceError": on_error}
        assert not resolver.load_data_source(props).result(timeout=WAIT).ok
        assert isinstance(on_error.call_args[0][0], ValueError)

    def test_dataframe_payload(self, resolver):
        df = pd.DataFrame({"x": [1], "y": [2]})
        resolver.load_data_source({"dataSource": resolved(df)}).result(timeout=WAIT)
        assert resolver.state.default_data == [{"x": 1, "y": 2}]

    def test_get_data_source_info(self, resolver):
        props = {
            "dataSource": resolved({"rows": [1], "total": 50}),
            "getDataSourceInfo": lambda p: {"data": p["rows"], "count": p["total"]},
        }
        resolver.load_data_source(props).result(timeout=WAIT)
        assert resolver.state.default_data == [1]
        assert resolver.state.default_data_source_count == 50

    def test_state_change_listener(self):
        listener = mock.Mock()
        resolver = DataSourceResolver(on_state_change=listener, discard_stale=False)
        resolver.load_data_source({"dataSource": resolved([1])}).result(timeout=WAIT)
        listener.assert_called_once_with(resolver.state)


# ---------------------------------------------------------------------------
# Notification precedence
# ---------------------------------------------------------------------------

class TestNotifications:
    def test_on_response_opts_out_of_processing(self, resolver):
        response = StubResponse({"data": [1]})
        on_response = mock.Mock()
        on_success = mock.Mock()
        props = {
            "dataSource": resolved(response),
            "onDataSourceResponse": on_response,
            "onDataSourceSuccess": on_success,
        }
        resolver.load_data_source(props).result(timeout=WAIT)
        on_response.assert_called_once_with(Outcome.success(response))
        on_success.assert_not_called()
        assert resolver.state.default_data is None

    def test_on_response_receives_failure(self, resolver):
        err = RuntimeError("x")
        on_response = mock.Mock()
        on_error = mock.Mock()
        props = {
            "dataSource": rejected(err),
            "onDataSourceResponse": on_response,
            "onDataSourceError": on_error,
        }
        resolver.load_data_source(props).result(timeout=WAIT)
        outcome = on_response.call_args[0][0]
        assert outcome.error is err
        on_error.assert_not_called()

    def test_on_success_skips_state_update(self, resolver):
        on_success = mock.Mock()
        props = {"dataSource": resolved(StubResponse({"data": [1]})), "onDataSourceSuccess": on_success}
        resolver.load_data_source(props).result(timeout=WAIT)
        on_success.assert_called_once_with({"data": [1]})
        assert resolver.state.default_data is None

    def test_loaded_runs_last(self, resolver):
        order = []
        response = StubResponse([1])
        props = {
            "dataSource": resolved(response),
            "onDataSourceSuccess": lambda payload: order.append("success"),
            "onDataSourceLoaded": lambda resp: order.append(("loaded", resp)),
        }
        resolver.load_data_source(props).result(timeout=WAIT)
        assert order == ["success", ("loaded", response)]

    def test_loaded_after_default_extraction(self, resolver):
        seen = []
        props = {
            "dataSource": resolved([1]),
            "onDataSourceLoaded": lambda resp: seen.append(list(resolver.state.default_data)),
        }
        resolver.load_data_source(props).result(timeout=WAIT)
        assert seen == [[1]]

    def test_loaded_not_called_on_failure(self, resolver):
        on_loaded = mock.Mock()
        props = {"dataSource": rejected(RuntimeError()), "onDataSourceLoaded": on_loaded}
        resolver.load_data_source(props).result(timeout=WAIT)
        on_loaded.assert_not_called()

    def test_loaded_with_on_response(self, resolver):
        on_loaded = mock.Mock()
        props = {"dataSource": resolved("raw"), "onDataSourceResponse": mock.Mock(),
                 "onDataSourceLoaded": on_loaded}
        resolver.load_data_source(props).result(timeout=WAIT)
        on_loaded.assert_called_once_with("raw")

    def test_hook_error_does_not_break_processing(self, resolver):
        on_loaded = mock.Mock()
        props = {
            "dataSource": resolved([1]),
            "onDataSourceSuccess": mock.Mock(side_effect=RuntimeError("hook")),
            "onDataSourceLoaded": on_loaded,
        }
        assert resolver.load_data_source(props).result(timeout=WAIT).ok
        on_loaded.assert_called_once()


# ---------------------------------------------------------------------------
# Overlapping loads
# ---------------------------------------------------------------------------

class TestOverlap:
    def test_last_settling_wins_by_default(self, resolver):
        first, second = Future(), Future()
        resolver.load_data_source({"dataSource": first})
        resolver.load_data_source({"dataSource": second})
        second.set_result(["new"])
        first.set_result(["old"])
        assert resolver.state.default_data == ["old"]

    def test_stale_completion_dropped_when_guarded(self):
        resolver = DataSourceResolver(discard_stale=True)
        first, second = Future(), Future()
        resolver.load_data_source({"dataSource": first})
        resolver.load_data_source({"dataSource": second})
        second.set_result(["new"])
        first.set_result(["old"])
        assert resolver.state.default_data == ["new"]

    def test_inactive_resolver_ignores_completion(self, resolver):
        pending = Future()
        resolver.load_data_source({"dataSource": pending})
        resolver.active = False
        pending.set_result([1])
        assert resolver.state.default_data is None
