"""
State policies for stateful behavior decorators.

A policy decides, for each call of a decorated operation, whether the
operation runs and what the caller gets back. Policies hold no state of
their own: everything they remember lives in the IdentityKeyedStore they
are handed, keyed by the call's owner. One policy instance can therefore
serve any number of decorated operations.

Policies:
- RunAtMostOnce: first call per owner runs, later calls return None
- RunAtMostN: first N calls per owner run, later calls return None
- MemoizeByReceiver: first call per owner runs, later calls return its result
- RequireAll: every call runs, but only with all declared arguments supplied
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from mixin_config import config
from mixins.errors import MissingArguments
from mixins.identity_store import IdentityKeyedStore
from mixins.operation import OperationCall

logger = logging.getLogger(__name__)


@dataclass
class RunMarker:
    """Record that an owner has already run the operation."""


@dataclass
class RunCounter:
    """Number of runs granted to an owner so far."""
    count: int = 0


@dataclass
class MemoizedResult:
    """First result the operation returned for an owner."""
    value: Any = None


class StatePolicy(ABC):
    """
    Base class for state policies.

    Example:
        ```python
        class RunOnEvenCalls(StatePolicy):
            def get_name(self) -> str:
                return "run_on_even_calls"

            def invoke(self, call, store):
                with store.lock:
                    counter = store.get(call.owner) or RunCounter()
                    counter.count += 1
                    store.set(call.owner, counter)
                if counter.count % 2 == 0:
                    return call.proceed()
                return None
        ```
    """

    @abstractmethod
    def get_name(self) -> str:
        """
        Return policy identifier.

        Used in decorated operations' repr and in log messages.
        """
        pass

    @abstractmethod
    def invoke(self, call: OperationCall, store: IdentityKeyedStore) -> Any:
        """
        Handle one call of the decorated operation.

        Args:
            call: The invocation; call.owner keys the state and
                  call.proceed() runs the operation with its original
                  receiver and arguments
            store: State ledger private to the decorated operation

        Returns:
            Whatever the caller of the decorated operation receives
        """
        pass

    def _suppressed(self, call: OperationCall) -> None:
        if config.decorators.log_suppressed_calls:
            logger.debug("%s suppressed call to %s for %r", self.get_name(), call.name, call.owner)
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class RunAtMostOnce(StatePolicy):
    """Run the operation on the first call per owner; later calls are silent no-ops."""

    def get_name(self) -> str:
        return "run_at_most_once"

    def invoke(self, call: OperationCall, store: IdentityKeyedStore) -> Any:
        # Mark before running so a re-entrant call from the operation itself is a no-op
        if not store.claim(call.owner, RunMarker()):
            return self._suppressed(call)
        return call.proceed()


class RunAtMostN(StatePolicy):
    """Run the operation on the first `limit` calls per owner."""

    def __init__(self, limit: int | None = None):
        """
        Args:
            limit: Runs allowed per owner (default: decorators.default_run_limit)
        """
        if limit is None:
            limit = config.decorators.default_run_limit
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        self.limit = limit

    def get_name(self) -> str:
        return f"run_at_most_{self.limit}"

    def invoke(self, call: OperationCall, store: IdentityKeyedStore) -> Any:
        with store.lock:
            counter = store.get(call.owner)
            if counter is None:
                counter = RunCounter()
                store.set(call.owner, counter)
            if counter.count >= self.limit:
                return self._suppressed(call)
            counter.count += 1
        return call.proceed()

    def __repr__(self) -> str:
        return f"RunAtMostN(limit={self.limit})"


class MemoizeByReceiver(StatePolicy):
    """
    Run the operation once per owner and replay its result afterwards.

    Arguments of later calls are ignored. A call that raises stores
    nothing, so the next call runs the operation again.
    """

    def get_name(self) -> str:
        return "memoize_by_receiver"

    def invoke(self, call: OperationCall, store: IdentityKeyedStore) -> Any:
        memo = store.get(call.owner)
        if memo is not None:
            return memo.value
        result = call.proceed()
        store.claim(call.owner, MemoizedResult(result))
        # Under a race the first stored result wins
        return store.get(call.owner).value


class RequireAll(StatePolicy):
    """Refuse calls that leave any declared parameter unfilled."""

    def get_name(self) -> str:
        return "require_all"

    def invoke(self, call: OperationCall, store: IdentityKeyedStore) -> Any:
        missing = call.missing()
        if missing:
            raise MissingArguments(call.name, call.arity, call.supplied, missing)
        return call.proceed()


POLICIES: dict[str, type[StatePolicy]] = {
    "run_at_most_once": RunAtMostOnce,
    "run_at_most_n": RunAtMostN,
    "memoize_by_receiver": MemoizeByReceiver,
    "require_all": RequireAll,
}
