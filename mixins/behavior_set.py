"""
BehaviorSet - declarative bundle of behavior to mix into targets.

A BehaviorSet holds two separate namespaces:
- instance operations, installed onto targets by the applicator
- shared members, which stay on the BehaviorSet itself, like class-level
  constants and static helpers (B.RED, B.parse(...))

Both maps are copied at construction, so later changes to the caller's
dicts have no effect. Each BehaviorSet owns one CapabilityTag for its
whole lifetime; membership_check() asks whether a candidate was given
this set's instance operations.

Example:
    ```python
    colour = BehaviorSet(
        {"set_colour_rgb": set_colour_rgb, "get_colour_rgb": get_colour_rgb},
        {"RED": {"r": 255, "g": 0, "b": 0}},
        name="colour",
    )
    colour.apply_to(Shape)

    shape = Shape()
    shape.set_colour_rgb(colour.RED)
    colour.membership_check(shape)  # True
    ```
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from mixins.capability import CapabilityTag, query

_counter = itertools.count(1)

_INSTANCE_ATTRS = frozenset({"name", "tag", "instance_operations", "_shared", "_hidden_shared"})


@dataclass(frozen=True)
class SharedMember:
    """
    A shared member with an explicit enumerability flag.

    Plain values passed as shared members are enumerable; wrap a value in
    SharedMember(value, enumerable=False) to keep it out of dir() and
    shared_members().
    """
    value: Any
    enumerable: bool = True


def _check_name(name: Any, kind: str) -> None:
    if not isinstance(name, str) or not name.isidentifier():
        raise ValueError(f"{kind} name must be an identifier, got {name!r}")


class BehaviorSet:
    """
    Instance operations + shared members + capability tag.

    Attributes:
        name: Identifier used in logs and repr
        tag: CapabilityTag stamped on every target this set is applied to
        instance_operations: Copy of the instance-operation map
    """

    def __init__(
        self,
        instance_operations: Mapping[str, Callable],
        shared_members: Mapping[str, Any] | None = None,
        *,
        name: str | None = None,
    ):
        """
        Build a behavior set.

        Args:
            instance_operations: name -> callable installed on targets
            shared_members: name -> value or callable kept on the set itself;
                            SharedMember wrappers control enumerability
            name: Identifier (default: behavior_set_<n>)

        Raises:
            TypeError: If an instance operation is not callable
            ValueError: If a name is not an identifier or a shared name
                        shadows BehaviorSet's own attributes
        """
        operations = dict(instance_operations)
        for op_name, operation in operations.items():
            _check_name(op_name, "Instance operation")
            if not callable(operation):
                raise TypeError(
                    f"Instance operation {op_name!r} must be callable, got {type(operation).__name__}"
                )

        shared: dict[str, Any] = {}
        hidden: set[str] = set()
        for member_name, member in dict(shared_members or {}).items():
            _check_name(member_name, "Shared member")
            if member_name in _INSTANCE_ATTRS or hasattr(type(self), member_name):
                raise ValueError(f"Shared member {member_name!r} shadows BehaviorSet.{member_name}")
            if isinstance(member, SharedMember):
                if not member.enumerable:
                    hidden.add(member_name)
                member = member.value
            shared[member_name] = member

        self.name = name or f"behavior_set_{next(_counter)}"
        self.instance_operations: dict[str, Callable] = operations
        self._shared = shared
        self._hidden_shared = frozenset(hidden)
        self.tag = CapabilityTag.create(self.name)

    @classmethod
    def construct(
        cls,
        instance_operations: Mapping[str, Callable],
        shared_members: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> BehaviorSet:
        return cls(instance_operations, shared_members, **kwargs)

    @property
    def instance_operation_names(self) -> tuple[str, ...]:
        return tuple(self.instance_operations)

    def membership_check(self, candidate: Any) -> bool:
        """Return True if candidate (or its class) was given this set's instance operations."""
        return query(candidate, self.tag)

    def apply_to(self, target: Any) -> Any:
        """Apply this set to target with the default applicator; returns target."""
        from mixins.applicator import apply
        return apply(self, target)

    # Shared members

    def shared_member(self, name: str) -> Any:
        """Return shared member `name`, enumerable or not."""
        try:
            return self._shared[name]
        except KeyError:
            raise AttributeError(f"{self.name} has no shared member {name!r}") from None

    def shared_members(self, include_hidden: bool = False) -> dict[str, Any]:
        """Return shared members; non-enumerable ones only with include_hidden."""
        return {
            name: value for name, value in self._shared.items()
            if include_hidden or name not in self._hidden_shared
        }

    def is_enumerable(self, name: str) -> bool:
        return name in self._shared and name not in self._hidden_shared

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails
        if name.startswith("__") or name == "_shared":
            raise AttributeError(name)
        return self.shared_member(name)

    def __dir__(self) -> list[str]:
        return sorted(set(super().__dir__()) | set(self.shared_members()))

    def __repr__(self) -> str:
        return (
            f"<BehaviorSet {self.name} operations={list(self.instance_operations)} "
            f"shared={list(self.shared_members())}>"
        )
