"""
Operation calls and declared arity.

An operation is any callable. When it is invoked through a receiver the
receiver fills its first parameter, the same way a method's `self` does,
so the declared arity seen by callers excludes that parameter.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Callable

from mixins.identity_store import RECEIVERLESS

_POSITIONAL = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)


def _parameters(operation: Callable, bound: bool) -> list[inspect.Parameter]:
    try:
        params = list(inspect.signature(operation).parameters.values())
    except (TypeError, ValueError):
        # Builtins without introspectable signatures declare nothing
        return []
    if bound and params and params[0].kind in _POSITIONAL:
        params = params[1:]
    return params


def declared_arity(operation: Callable, bound: bool = False) -> int:
    """
    Count the required positional parameters of operation.

    Args:
        operation: Callable to inspect
        bound: True if a receiver fills the first parameter

    Returns:
        Number of positional parameters without defaults
    """
    return sum(
        1 for p in _parameters(operation, bound)
        if p.kind in _POSITIONAL and p.default is p.empty
    )


def missing_arguments(
    operation: Callable,
    args: tuple,
    kwargs: dict[str, Any],
    bound: bool = False,
) -> list[str]:
    """Return the names of required parameters that args/kwargs leave unfilled."""
    params = _parameters(operation, bound)
    positional = [p for p in params if p.kind in _POSITIONAL]
    missing = []
    for index, p in enumerate(positional):
        if p.default is not p.empty or index < len(args):
            continue
        if p.kind is inspect.Parameter.POSITIONAL_OR_KEYWORD and p.name in kwargs:
            continue
        missing.append(p.name)
    for p in params:
        if p.kind is inspect.Parameter.KEYWORD_ONLY and p.default is p.empty and p.name not in kwargs:
            missing.append(p.name)
    return missing


def filled_arity(
    operation: Callable,
    args: tuple,
    kwargs: dict[str, Any],
    bound: bool = False,
) -> int:
    """Count the required positional parameters that args/kwargs fill."""
    positional = [p for p in _parameters(operation, bound) if p.kind in _POSITIONAL]
    filled = 0
    for index, p in enumerate(positional):
        if p.default is not p.empty:
            continue
        if index < len(args) or (p.kind is inspect.Parameter.POSITIONAL_OR_KEYWORD and p.name in kwargs):
            filled += 1
    return filled


def operation_name(operation: Callable) -> str:
    return getattr(operation, "__qualname__", None) or getattr(operation, "__name__", None) or repr(operation)


@dataclass
class OperationCall:
    """
    One invocation of a wrapped operation.

    Policies inspect the call (owner, arguments) and decide whether to
    proceed(), which invokes the operation with the original receiver and
    the original arguments.
    """

    operation: Callable
    args: tuple = ()
    kwargs: dict[str, Any] = field(default_factory=dict)
    receiver: Any = None
    has_receiver: bool = False

    @property
    def owner(self) -> Any:
        """Identity that owns this call's state."""
        return self.receiver if self.has_receiver else RECEIVERLESS

    @property
    def name(self) -> str:
        return operation_name(self.operation)

    @property
    def arity(self) -> int:
        return declared_arity(self.operation, bound=self.has_receiver)

    @property
    def supplied(self) -> int:
        """Required positional parameters this call fills; optional ones are not counted."""
        return filled_arity(self.operation, self.args, self.kwargs, bound=self.has_receiver)

    def missing(self) -> list[str]:
        return missing_arguments(self.operation, self.args, self.kwargs, bound=self.has_receiver)

    def proceed(self) -> Any:
        if not self.has_receiver:
            return self.operation(*self.args, **self.kwargs)
        # Bind through the descriptor protocol so a wrapped StatefulOperation keeps the receiver
        getter = getattr(type(self.operation), "__get__", None)
        if getter is None:
            return self.operation(self.receiver, *self.args, **self.kwargs)
        bound = getter(self.operation, self.receiver, type(self.receiver))
        return bound(*self.args, **self.kwargs)
