"""
CapabilityTag - opaque membership marker standing in for nominal type checks.

A tag is stamped onto a target when a BehaviorSet is applied to it. Later,
membership queries ask "was this object (or its class) given that set?"
instead of "is this object an instance of X?".

Stamps live in the target's own __capability_tags__ attribute. Queries
follow the MRO, so a tag stamped on a class covers its instances and
subclasses, the same way an inherited method would.
"""

from __future__ import annotations

import itertools
from typing import Any

from mixins.errors import InvalidTarget

TAGS_ATTR = "__capability_tags__"

_counter = itertools.count(1)


class CapabilityTag:
    """
    Unique, unforgeable identifier.

    Tags compare by identity only. Copying a tag returns the same tag and
    pickling is refused, so a tag can only be obtained from whoever
    created it.
    """

    __slots__ = ("label", "serial", "__weakref__")

    def __init__(self, label: str | None = None):
        self.serial = next(_counter)
        self.label = label or f"capability_{self.serial}"

    @classmethod
    def create(cls, label: str | None = None) -> CapabilityTag:
        """Return a fresh tag, distinct from every other tag."""
        return cls(label)

    def __copy__(self) -> CapabilityTag:
        return self

    def __deepcopy__(self, memo: dict) -> CapabilityTag:
        return self

    def __reduce__(self):
        raise TypeError(f"{self!r} cannot be pickled")

    def __repr__(self) -> str:
        return f"<CapabilityTag {self.label}#{self.serial}>"


def _own_tags(obj: Any) -> frozenset:
    try:
        tags = vars(obj).get(TAGS_ATTR)
    except Exception:
        # No usable own namespace: no __dict__, a proxy refusing attribute
        # access, or a __dict__ that is not a mapping
        return frozenset()
    return tags if isinstance(tags, frozenset) else frozenset()


def stamp(target: Any, tag: CapabilityTag) -> None:
    """
    Mark target as holding tag.

    Stamping twice is a no-op: nothing is written when the target already
    owns the tag.

    Raises:
        InvalidTarget: If target does not accept new attributes
    """
    owned = _own_tags(target)
    if tag in owned:
        return
    try:
        setattr(target, TAGS_ATTR, owned | {tag})
    except (TypeError, AttributeError) as e:
        raise InvalidTarget(target, str(e)) from e


def capabilities_of(target: Any) -> frozenset:
    """Return every tag held by target, own or inherited."""
    tags = set(_own_tags(target))
    # type() and type.__getattribute__ bypass any attribute hooks on target
    owner = target if issubclass(type(target), type) else type(target)
    for klass in type.__getattribute__(owner, "__mro__"):
        tags |= _own_tags(klass)
    return frozenset(tags)


def query(target: Any, tag: CapabilityTag) -> bool:
    """Return True if target (or its class hierarchy) holds tag. Never raises."""
    return tag in capabilities_of(target)
