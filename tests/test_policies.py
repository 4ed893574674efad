"""
Tests for state policies.

Tests:
- RunAtMostN limits and defaults
- MemoizeByReceiver replay and failure handling
- Policy names and custom policies
- Direct invoke() with an OperationCall
- Suppressed-call logging
"""

import logging

import pytest

from mixin_config import config
from mixins.identity_store import IdentityKeyedStore
from mixins.operation import OperationCall
from mixins.policies import (
    POLICIES,
    MemoizeByReceiver,
    MemoizedResult,
    RequireAll,
    RunAtMostN,
    RunAtMostOnce,
    RunCounter,
    RunMarker,
    StatePolicy,
)
from mixins.stateful import decorate


class Receiver:
    pass


class TestRunAtMostN:
    """Test suite for RunAtMostN."""

    def test_runs_up_to_limit(self):
        """The first `limit` calls run, later calls return None."""
        calls = []

        class Thing:
            tick = decorate(lambda self: calls.append(self) or len(calls), RunAtMostN(3))

        thing = Thing()
        results = [thing.tick() for _ in range(5)]

        assert results == [1, 2, 3, None, None]
        assert len(calls) == 3

    def test_limit_is_per_receiver(self):
        calls = []

        class Thing:
            tick = decorate(lambda self: calls.append(self), RunAtMostN(2))

        a, b = Thing(), Thing()
        for _ in range(3):
            a.tick()
            b.tick()

        assert calls.count(a) == 2
        assert calls.count(b) == 2

    def test_counter_record(self):
        """State is a RunCounter in the decorator's store."""
        wrapped = decorate(lambda self: None, RunAtMostN(2))

        class Thing:
            tick = wrapped

        thing = Thing()
        thing.tick()

        assert wrapped.store.get(thing) == RunCounter(count=1)

    def test_default_limit_from_config(self):
        """With no limit, decorators.default_run_limit applies."""
        assert RunAtMostN().limit == config.decorators.default_run_limit

    def test_default_limit_follows_config_changes(self, monkeypatch):
        monkeypatch.setattr(config.decorators, "default_run_limit", 4)
        assert RunAtMostN().limit == 4

    @pytest.mark.parametrize("limit", [0, -1])
    def test_invalid_limit(self, limit):
        with pytest.raises(ValueError, match="at least 1"):
            RunAtMostN(limit)

    def test_name_and_repr(self):
        policy = RunAtMostN(3)
        assert policy.get_name() == "run_at_most_3"
        assert repr(policy) == "RunAtMostN(limit=3)"


class TestRunAtMostOnce:
    """Test suite for RunAtMostOnce."""

    def test_marker_recorded_before_running(self):
        """A re-entrant call from inside the operation is already a no-op."""
        calls = []

        def start(self):
            calls.append("outer")
            assert self.start() is None
            return "started"

        class Thing:
            pass

        Thing.start = decorate(start, RunAtMostOnce)
        thing = Thing()

        assert thing.start() == "started"
        assert calls == ["outer"]
        assert isinstance(Thing.__dict__["start"].store.get(thing), RunMarker)

    def test_failed_run_still_counts(self):
        """The marker is set before invoking, so a failing first run is not retried."""
        calls = []

        def start(self):
            calls.append("run")
            raise RuntimeError("boom")

        class Thing:
            pass

        Thing.start = decorate(start, RunAtMostOnce)
        thing = Thing()

        with pytest.raises(RuntimeError):
            thing.start()
        assert thing.start() is None
        assert calls == ["run"]


class TestMemoizeByReceiver:
    """Test suite for MemoizeByReceiver."""

    def test_replays_first_result(self):
        """Later calls return the first result without running."""
        calls = []

        def load(self, key):
            calls.append(key)
            return f"value-{key}"

        class Thing:
            get = decorate(load, MemoizeByReceiver)

        thing = Thing()
        assert thing.get("a") == "value-a"
        assert thing.get("b") == "value-a"
        assert calls == ["a"]

    def test_memo_is_per_receiver(self):
        class Thing:
            get = decorate(lambda self: id(self), MemoizeByReceiver)

        a, b = Thing(), Thing()
        assert a.get() == id(a)
        assert b.get() == id(b)

    def test_none_result_is_memoized(self):
        """None is a valid memoized result, not a missing one."""
        calls = []

        class Thing:
            get = decorate(lambda self: calls.append(1), MemoizeByReceiver)

        thing = Thing()
        thing.get()
        thing.get()

        assert calls == [1]

    def test_failure_not_memoized(self):
        """An exception leaves no record; the next call runs again."""
        attempts = []

        def load(self):
            attempts.append(1)
            if len(attempts) == 1:
                raise ConnectionError("flaky")
            return "loaded"

        class Thing:
            get = decorate(load, MemoizeByReceiver)

        thing = Thing()
        with pytest.raises(ConnectionError):
            thing.get()
        assert thing.get() == "loaded"
        assert thing.get() == "loaded"
        assert len(attempts) == 2

    def test_record_type(self):
        wrapped = decorate(lambda self: 7, MemoizeByReceiver)

        class Thing:
            get = wrapped

        thing = Thing()
        thing.get()
        assert wrapped.store.get(thing) == MemoizedResult(7)


class TestPolicyInterface:
    """Test suite for the StatePolicy base class."""

    def test_base_is_abstract(self):
        with pytest.raises(TypeError):
            StatePolicy()

    def test_names(self):
        assert RunAtMostOnce().get_name() == "run_at_most_once"
        assert MemoizeByReceiver().get_name() == "memoize_by_receiver"
        assert RequireAll().get_name() == "require_all"

    def test_registry(self):
        """Every registered name maps to its policy class."""
        for name, policy_class in POLICIES.items():
            if policy_class is RunAtMostN:
                assert policy_class(2).get_name() == "run_at_most_2"
            else:
                assert policy_class().get_name() == name

    def test_custom_policy(self):
        """Subclasses plug into decorate() and keep state in the store."""
        class RunOnEvenCalls(StatePolicy):
            def get_name(self):
                return "run_on_even_calls"

            def invoke(self, call, store):
                with store.lock:
                    counter = store.get(call.owner) or RunCounter()
                    counter.count += 1
                    store.set(call.owner, counter)
                if counter.count % 2 == 0:
                    return call.proceed()
                return None

        calls = []

        class Thing:
            tick = decorate(lambda self: calls.append(self), RunOnEvenCalls)

        a, b = Thing(), Thing()
        for _ in range(4):
            a.tick()
        b.tick()

        assert calls == [a, a]

    def test_direct_invoke(self):
        """Policies can be driven with a hand-built OperationCall."""
        receiver = Receiver()
        store = IdentityKeyedStore()
        call = OperationCall(lambda self, x: (self, x), (5,), {}, receiver, True)

        policy = RunAtMostOnce()
        assert policy.invoke(call, store) == (receiver, 5)
        assert policy.invoke(call, store) is None
        assert store.has(receiver)


class TestSuppressedCallLogging:
    """Suppressed calls are logged only when configured."""

    def test_logged_when_enabled(self, caplog, monkeypatch):
        monkeypatch.setattr(config.decorators, "log_suppressed_calls", True)
        caplog.set_level(logging.DEBUG, logger="mixins.policies")

        wrapped = decorate(lambda: None, RunAtMostOnce)
        wrapped()
        wrapped()

        messages = [r.getMessage() for r in caplog.records if r.name == "mixins.policies"]
        assert len(messages) == 1
        assert "run_at_most_once suppressed" in messages[0]

    def test_silent_when_disabled(self, caplog, monkeypatch):
        monkeypatch.setattr(config.decorators, "log_suppressed_calls", False)
        caplog.set_level(logging.DEBUG, logger="mixins.policies")

        wrapped = decorate(lambda: None, RunAtMostOnce)
        wrapped()
        wrapped()

        assert not [r for r in caplog.records if r.name == "mixins.policies"]
