"""
Errors raised by the mixin and stateful-decorator machinery.

All errors derive from MixinError and from TypeError, since each one
signals that a caller handed the wrong kind of object (or too few
arguments) to an otherwise valid operation.
"""

from typing import Any, Sequence


class MixinError(Exception):
    """Base error."""


class InvalidIdentityKind(MixinError, TypeError):
    """Raised when an IdentityKeyedStore is given a value-typed identity."""

    def __init__(self, owner: Any, reason: str = "value-typed identities cannot own state"):
        self.owner_type = type(owner).__name__
        super().__init__(f"{self.owner_type}: {reason}")


class InvalidTarget(MixinError, TypeError):
    """Raised when a target does not accept new attributes."""

    def __init__(self, target: Any, reason: str = "target is not extensible"):
        self.target_type = target.__name__ if isinstance(target, type) else type(target).__name__
        super().__init__(f"Cannot extend {self.target_type}: {reason}")


class MissingArguments(MixinError, TypeError):
    """
    Raised when a RequireAll operation is invoked with fewer arguments
    than it declares.

    Attributes:
        operation_name: Qualified name of the wrapped operation
        expected: Declared arity (receiver excluded)
        supplied: Required positional parameters the call did fill
        missing: Names of required parameters left unfilled
    """

    def __init__(
        self,
        operation_name: str,
        expected: int,
        supplied: int,
        missing: Sequence[str],
    ):
        self.operation_name = operation_name
        self.expected = expected
        self.supplied = supplied
        self.missing = tuple(missing)
        super().__init__(
            f"{operation_name}() expects {expected} argument(s), got {supplied}; "
            f"missing: {', '.join(self.missing)}"
        )
