"""
MixinApplicator - compose a BehaviorSet into a target.

apply(behavior_set, target):
1. Install each instance operation the target does not already own
   (an own, truthy attribute of the same name wins; first definition wins)
2. Record installed names as non-enumerable in __hidden_members__
3. Stamp the target with the set's CapabilityTag

Shared members never reach the target; they stay on the BehaviorSet.

Application is all-or-nothing: if the target rejects any write, every
write made so far is undone before InvalidTarget is raised. Reapplying
the same set to the same target writes nothing.

Targets are classes or instances. On a class, operations are stored as
plain attributes and bind to instances through the descriptor protocol.
On an instance, operations are bound to that instance when installed.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from mixin_config import config
from mixins.behavior_set import BehaviorSet
from mixins.capability import TAGS_ATTR, stamp
from mixins.errors import InvalidTarget
from mixins.identity_store import is_value_typed

logger = logging.getLogger(__name__)

HIDDEN_ATTR = "__hidden_members__"

_MISSING = object()


def _own_dict(target: Any) -> dict[str, Any]:
    try:
        return dict(vars(target))
    except TypeError:
        # No __dict__ (e.g. __slots__ instances): nothing is owned
        return {}


def hidden_members(target: Any) -> frozenset:
    """Names the target owns but keeps out of enumeration."""
    return _own_dict(target).get(HIDDEN_ATTR, frozenset())


def own_members(target: Any, include_hidden: bool = False) -> dict[str, Any]:
    """
    Enumerate the target's own public members.

    Dunder attributes are always skipped; names installed by the
    applicator are skipped unless include_hidden is set.

    Args:
        target: Class or instance
        include_hidden: Also return non-enumerable members

    Returns:
        Dict of name -> value in definition order
    """
    own = _own_dict(target)
    hidden = frozenset() if include_hidden else hidden_members(target)
    return {
        name: value for name, value in own.items()
        if not (name.startswith("__") and name.endswith("__")) and name not in hidden
    }


class MixinApplicator:
    """
    Installs BehaviorSets onto targets.

    Responsibilities:
    - Non-destructive install of instance operations
    - Enumerability bookkeeping for installed names
    - Capability stamping
    - Rollback when the target refuses a write
    """

    def __init__(self, log_skipped_members: bool | None = None):
        """
        Initialize applicator.

        Args:
            log_skipped_members: Log operations skipped because the target
                already owns them (default: applicator.log_skipped_members)
        """
        if log_skipped_members is None:
            log_skipped_members = config.applicator.log_skipped_members
        self.log_skipped_members = log_skipped_members
        self._lock = threading.RLock()

    def plan(self, behavior_set: BehaviorSet, target: Any) -> dict[str, Callable]:
        """
        Return the instance operations apply() would install on target.

        An operation is planned only if the target lacks an own, truthy
        member of the same name.
        """
        own = _own_dict(target)
        planned = {}
        for name, operation in behavior_set.instance_operations.items():
            if own.get(name):
                if self.log_skipped_members:
                    logger.debug(
                        "%s: %s already owns %r, keeping it",
                        behavior_set.name, _describe(target), name,
                    )
                continue
            planned[name] = operation
        return planned

    def apply(self, behavior_set: BehaviorSet, target: Any) -> Any:
        """
        Compose behavior_set into target.

        Args:
            behavior_set: BehaviorSet to apply
            target: Class or instance to extend (mutated in place)

        Returns:
            target, for chaining

        Raises:
            InvalidTarget: If target cannot take new attributes; target is
                           left exactly as it was
        """
        if is_value_typed(target):
            raise InvalidTarget(target, "value-typed objects cannot be extended")

        with self._lock:
            planned = self.plan(behavior_set, target)
            # (name, previous value or _MISSING) for rollback
            written: list[tuple[str, Any]] = []
            own = _own_dict(target)
            try:
                for name, operation in planned.items():
                    written.append((name, own.get(name, _MISSING)))
                    setattr(target, name, _bind(operation, target))

                if planned:
                    hidden = hidden_members(target)
                    written.append((HIDDEN_ATTR, own.get(HIDDEN_ATTR, _MISSING)))
                    setattr(target, HIDDEN_ATTR, hidden | set(planned))

                written.append((TAGS_ATTR, own.get(TAGS_ATTR, _MISSING)))
                stamp(target, behavior_set.tag)
            except InvalidTarget:
                _rollback(target, written)
                raise
            except (TypeError, AttributeError) as e:
                _rollback(target, written)
                raise InvalidTarget(target, str(e)) from e

        if planned:
            logger.debug(
                "Applied %s to %s: installed %s",
                behavior_set.name, _describe(target), ", ".join(planned),
            )
        return target

    def apply_all(self, target: Any, *behavior_sets: BehaviorSet) -> Any:
        """Apply each set in order; earlier sets win name conflicts."""
        for behavior_set in behavior_sets:
            self.apply(behavior_set, target)
        return target


def _bind(operation: Callable, target: Any) -> Any:
    if isinstance(target, type):
        return operation
    getter = getattr(type(operation), "__get__", None)
    if getter is None:
        return operation
    return getter(operation, target, type(target))


def _rollback(target: Any, written: list[tuple[str, Any]]) -> None:
    for name, previous in reversed(written):
        if previous is _MISSING:
            if name in _own_dict(target):
                delattr(target, name)
        else:
            setattr(target, name, previous)


def _describe(target: Any) -> str:
    if isinstance(target, type):
        return target.__qualname__
    return f"<{type(target).__qualname__} instance>"


default_applicator = MixinApplicator()


def apply(behavior_set: BehaviorSet, target: Any) -> Any:
    """Apply behavior_set to target with the default applicator."""
    return default_applicator.apply(behavior_set, target)


def apply_all(target: Any, *behavior_sets: BehaviorSet) -> Any:
    """Apply several sets to target in order with the default applicator."""
    return default_applicator.apply_all(target, *behavior_sets)


def mixin(*behavior_sets: BehaviorSet) -> Callable[[type], type]:
    """
    Class decorator applying behavior_sets at class creation.

    Example:
        ```python
        @mixin(colour, serialisable)
        class Shape:
            ...
        ```
    """
    def decorator(cls: type) -> type:
        return apply_all(cls, *behavior_sets)

    return decorator
