"""
StatefulBehaviorDecorator - wrap an operation with per-receiver private state.

The wrapped operation is a descriptor, so the receiver is whatever Python
binds it to:

- obj.operation(...)      receiver is obj
- Class.operation(obj, ...) receiver is obj (first argument, as for plain methods)
- operation(...)          no receiver; state is kept under RECEIVERLESS

All state goes through an IdentityKeyedStore created for this one
decorate() call, keyed by the receiver's identity. Two receivers sharing
the wrapped operation never see each other's history, and two separately
decorated operations never share a store even on the same object.

Example:
    ```python
    class Connection:
        @run_once
        def open(self):
            ...

    a, b = Connection(), Connection()
    a.open()   # runs
    b.open()   # runs (b has its own history)
    a.open()   # no-op, returns None
    ```
"""

from __future__ import annotations

import functools
import logging
from typing import Any, Callable

from mixins.identity_store import IdentityKeyedStore
from mixins.operation import OperationCall, declared_arity, operation_name
from mixins.policies import (
    POLICIES,
    MemoizeByReceiver,
    RequireAll,
    RunAtMostN,
    RunAtMostOnce,
    StatePolicy,
)

logger = logging.getLogger(__name__)

PolicyLike = StatePolicy | type[StatePolicy] | str


def _resolve_policy(policy: PolicyLike) -> StatePolicy:
    if isinstance(policy, str):
        if policy not in POLICIES:
            raise ValueError(f"Unknown policy: {policy} (known: {', '.join(POLICIES)})")
        policy = POLICIES[policy]
    if isinstance(policy, type) and issubclass(policy, StatePolicy):
        policy = policy()
    if not isinstance(policy, StatePolicy):
        raise TypeError(f"Expected a StatePolicy, got {type(policy).__name__}")
    return policy


class StatefulOperation:
    """
    An operation wrapped by a state policy.

    Attributes:
        operation: The wrapped callable
        policy: StatePolicy deciding each call
        store: IdentityKeyedStore private to this wrapper
    """

    def __init__(self, operation: Callable, policy: StatePolicy, store: IdentityKeyedStore | None = None):
        if not callable(operation):
            raise TypeError(f"Cannot decorate non-callable {type(operation).__name__}")
        # Copies operation.__dict__ too, so it must run before our own attributes are set
        functools.update_wrapper(self, operation)
        self.operation = operation
        self.policy = policy
        self.store = store if store is not None else IdentityKeyedStore()

    @property
    def arity(self) -> int:
        """Declared arity when called through a receiver."""
        return declared_arity(self.operation, bound=True)

    def invoke(self, receiver: Any, args: tuple, kwargs: dict[str, Any], has_receiver: bool = True) -> Any:
        call = OperationCall(self.operation, args, kwargs, receiver, has_receiver)
        return self.policy.invoke(call, self.store)

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.invoke(None, args, kwargs, has_receiver=False)

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return _ClassAccess(self)
        return BoundStatefulOperation(self, instance)

    def __repr__(self) -> str:
        return f"<StatefulOperation {operation_name(self.operation)} policy={self.policy.get_name()}>"


class BoundStatefulOperation:
    """A StatefulOperation bound to a receiver, as obj.operation."""

    __slots__ = ("__func__", "__self__")

    def __init__(self, func: StatefulOperation, receiver: Any):
        self.__func__ = func
        self.__self__ = receiver

    @property
    def __wrapped__(self) -> Callable:
        return self.__func__.operation

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.__func__.invoke(self.__self__, args, kwargs)

    def __getattr__(self, name: str) -> Any:
        if name in ("__func__", "__self__"):
            raise AttributeError(name)
        return getattr(self.__func__, name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BoundStatefulOperation):
            return NotImplemented
        return self.__func__ is other.__func__ and self.__self__ is other.__self__

    def __hash__(self) -> int:
        return hash((id(self.__func__), id(self.__self__)))

    def __repr__(self) -> str:
        return f"<bound {self.__func__!r} of {self.__self__!r}>"


class _ClassAccess:
    """Class.operation: the first positional argument is the receiver."""

    __slots__ = ("__func__",)

    def __init__(self, func: StatefulOperation):
        self.__func__ = func

    @property
    def __wrapped__(self) -> Callable:
        return self.__func__.operation

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        if not args:
            return self.__func__.invoke(None, args, kwargs, has_receiver=False)
        return self.__func__.invoke(args[0], args[1:], kwargs)

    def __getattr__(self, name: str) -> Any:
        if name == "__func__":
            raise AttributeError(name)
        return getattr(self.__func__, name)

    def __repr__(self) -> str:
        return repr(self.__func__)


def decorate(operation: Callable, policy: PolicyLike) -> StatefulOperation:
    """
    Wrap operation so each call goes through policy with per-receiver state.

    Args:
        operation: Callable to wrap; a receiver, when present, fills its first parameter
        policy: StatePolicy instance, StatePolicy subclass, or registered policy name

    Returns:
        StatefulOperation with a fresh IdentityKeyedStore
    """
    policy = _resolve_policy(policy)
    logger.debug("Decorating %s with %s", operation_name(operation), policy.get_name())
    return StatefulOperation(operation, policy)


class StatefulBehaviorDecorator:
    """Namespace for decorate() and the policy shortcuts."""

    decorate = staticmethod(decorate)


def run_once(operation: Callable) -> StatefulOperation:
    """Decorator: run at most once per receiver."""
    return decorate(operation, RunAtMostOnce())


def run_at_most(limit: int | None = None) -> Callable[[Callable], StatefulOperation]:
    """Decorator factory: run at most `limit` times per receiver."""
    policy = RunAtMostN(limit)

    def decorator(operation: Callable) -> StatefulOperation:
        return decorate(operation, policy)

    return decorator


def memoize_by_receiver(operation: Callable) -> StatefulOperation:
    """Decorator: compute once per receiver, then replay the result."""
    return decorate(operation, MemoizeByReceiver())


def require_all(operation: Callable) -> StatefulOperation:
    """Decorator: reject calls missing any declared argument."""
    return decorate(operation, RequireAll())
