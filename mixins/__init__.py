"""
Composable behavior mixins with per-receiver state.

Behaviors extend classes and instances through:
- BehaviorSets (instance operations + shared members) applied by MixinApplicator
- Capability tags (membership_check instead of isinstance)
- Stateful decorators (run once, run N times, memoize, require all arguments),
  whose state is kept per receiver in an IdentityKeyedStore

Example:
    ```python
    from mixins import BehaviorSet, mixin, run_once

    def greet(self):
        return f"hello from {self.name}"

    greeting = BehaviorSet({"greet": greet}, {"DEFAULT_NAME": "anon"})

    @mixin(greeting)
    class Robot:
        def __init__(self, name):
            self.name = name

        @run_once
        def boot(self):
            ...

    greeting.membership_check(Robot("r2"))  # True
    ```
"""

import logging

from mixins.applicator import MixinApplicator, apply, apply_all, hidden_members, mixin, own_members
from mixins.behavior_set import BehaviorSet, SharedMember
from mixins.capability import CapabilityTag, capabilities_of, query, stamp
from mixins.errors import InvalidIdentityKind, InvalidTarget, MissingArguments, MixinError
from mixins.identity_store import RECEIVERLESS, IdentityKeyedStore
from mixins.policies import MemoizeByReceiver, RequireAll, RunAtMostN, RunAtMostOnce, StatePolicy
from mixins.stateful import (
    StatefulBehaviorDecorator,
    StatefulOperation,
    decorate,
    memoize_by_receiver,
    require_all,
    run_at_most,
    run_once,
)

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "BehaviorSet",
    "SharedMember",
    "MixinApplicator",
    "apply",
    "apply_all",
    "mixin",
    "own_members",
    "hidden_members",
    "CapabilityTag",
    "capabilities_of",
    "query",
    "stamp",
    "IdentityKeyedStore",
    "RECEIVERLESS",
    "StatePolicy",
    "RunAtMostOnce",
    "RunAtMostN",
    "MemoizeByReceiver",
    "RequireAll",
    "StatefulBehaviorDecorator",
    "StatefulOperation",
    "decorate",
    "run_once",
    "run_at_most",
    "memoize_by_receiver",
    "require_all",
    "MixinError",
    "InvalidIdentityKind",
    "InvalidTarget",
    "MissingArguments",
]
