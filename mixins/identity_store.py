"""
IdentityKeyedStore - per-owner state ledger keyed by object identity.

Entries are keyed by id() and guarded by a weak reference to the owner,
so two owners that compare equal still get separate entries, and an entry
never keeps its owner alive: when the owner is collected the weakref
callback drops the entry.

Owners that are reference-typed but cannot be weakly referenced (classes
with __slots__ and no __weakref__ slot) are held strongly when
identity_store.allow_strong_fallback is on. Their entries then live as
long as the store does.

Calls made without a receiver are keyed by RECEIVERLESS. Every
receiver-less call through the same store shares that one entry, so a
repeated receiver-less call remembers its own history.
"""

from __future__ import annotations

import logging
import threading
import weakref
from typing import Any, Callable, Iterator

from mixin_config import config
from mixins.errors import InvalidIdentityKind

logger = logging.getLogger(__name__)

VALUE_TYPES: tuple[type, ...] = (
    int, float, complex, str, bytes, tuple, frozenset, range, type(None),
)


class _Receiverless:
    """Stand-in owner for invocations without a receiver."""

    _instance: _Receiverless | None = None

    def __new__(cls) -> _Receiverless:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "RECEIVERLESS"

    def __copy__(self) -> _Receiverless:
        return self

    def __deepcopy__(self, memo: dict) -> _Receiverless:
        return self

    def __reduce__(self) -> str:
        return "RECEIVERLESS"


RECEIVERLESS = _Receiverless()


def is_value_typed(obj: Any) -> bool:
    """Return True for objects whose identity is not meaningful (ints, strings, tuples...)."""
    return isinstance(obj, VALUE_TYPES)


class IdentityKeyedStore:
    """
    Map from owner identity to a private state record.

    Example:
        ```python
        store = IdentityKeyedStore()
        store.set(widget, RunMarker())
        store.has(widget)        # True
        store.has(other_widget)  # False, even if other_widget == widget
        ```
    """

    def __init__(self, allow_strong_fallback: bool | None = None):
        """
        Initialize an empty store.

        Args:
            allow_strong_fallback: Hold non-weakrefable owners strongly instead
                of rejecting them (default: identity_store.allow_strong_fallback)
        """
        if allow_strong_fallback is None:
            allow_strong_fallback = config.identity_store.allow_strong_fallback
        self.allow_strong_fallback = allow_strong_fallback
        # id(owner) -> (reference to owner, record)
        self._entries: dict[int, tuple[Callable[[], Any], Any]] = {}
        self.lock = threading.RLock()

    def _check(self, owner: Any) -> int:
        if is_value_typed(owner):
            raise InvalidIdentityKind(owner)
        return id(owner)

    def _lookup(self, owner: Any) -> tuple[Callable[[], Any], Any] | None:
        key = self._check(owner)
        entry = self._entries.get(key)
        # An id can be reused only after its owner died; the deref guards the gap
        if entry is not None and entry[0]() is owner:
            return entry
        return None

    def _reference(self, owner: Any) -> Callable[[], Any]:
        key = id(owner)
        entries = self._entries
        lock = self.lock

        # Runs whenever the owner is collected, possibly in another thread
        def _forget(_ref: weakref.ref, key: int = key) -> None:
            with lock:
                entry = entries.get(key)
                if entry is not None and entry[0] is _ref:
                    del entries[key]

        try:
            return weakref.ref(owner, _forget)
        except TypeError:
            if not self.allow_strong_fallback:
                raise InvalidIdentityKind(owner, "owner cannot be weakly referenced") from None
            logger.debug(
                "%s is not weakly referenceable; holding it strongly for the store's lifetime",
                type(owner).__name__,
            )
            return lambda: owner

    def has(self, owner: Any) -> bool:
        """Return True if owner already has a record."""
        with self.lock:
            return self._lookup(owner) is not None

    def get(self, owner: Any, default: Any = None) -> Any:
        """Return owner's record, or default if it has none."""
        with self.lock:
            entry = self._lookup(owner)
            return default if entry is None else entry[1]

    def set(self, owner: Any, record: Any) -> None:
        """Store record for owner, replacing any previous one."""
        with self.lock:
            entry = self._lookup(owner)
            ref = entry[0] if entry is not None else self._reference(owner)
            self._entries[id(owner)] = (ref, record)

    def claim(self, owner: Any, record: Any) -> bool:
        """
        Store record for owner only if it has none yet.

        Returns:
            True if this call inserted the record, False if one existed
        """
        with self.lock:
            if self._lookup(owner) is not None:
                return False
            self._entries[id(owner)] = (self._reference(owner), record)
            return True

    def owners(self) -> Iterator[Any]:
        """Iterate over owners that are still alive."""
        with self.lock:
            # list() copies without allocating, so a collection on this
            # thread cannot resize the dict mid-copy
            entries = list(self._entries.values())
        for ref, _ in entries:
            owner = ref()
            if owner is not None:
                yield owner

    def __contains__(self, owner: Any) -> bool:
        if is_value_typed(owner):
            return False
        return self.has(owner)

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return f"<IdentityKeyedStore entries={len(self)}>"
