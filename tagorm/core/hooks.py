"""Lifecycle hook capabilities and their invoker.

A record class opts into a hook by defining the matching method; the
capability is detected once per class when its model is parsed.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Protocol, runtime_checkable

from .context import QueryContext

logger = logging.getLogger(__name__)


class Hook(str, Enum):
    """Lifecycle events a record can react to."""

    BEFORE_CREATE = "before_create"
    AFTER_CREATE = "after_create"
    BEFORE_UPDATE = "before_update"
    AFTER_UPDATE = "after_update"
    BEFORE_DELETE = "before_delete"
    AFTER_DELETE = "after_delete"
    AFTER_FIND = "after_find"


@runtime_checkable
class BeforeCreate(Protocol):
    def before_create(self, ctx: Optional[QueryContext], db: Any) -> None: ...


@runtime_checkable
class AfterCreate(Protocol):
    def after_create(self, ctx: Optional[QueryContext], db: Any) -> None: ...


@runtime_checkable
class BeforeUpdate(Protocol):
    def before_update(
        self, ctx: Optional[QueryContext], db: Any, data: Mapping[str, Any]
    ) -> None: ...


@runtime_checkable
class AfterUpdate(Protocol):
    def after_update(self, ctx: Optional[QueryContext], db: Any) -> None: ...


@runtime_checkable
class BeforeDelete(Protocol):
    def before_delete(self, ctx: Optional[QueryContext], db: Any) -> None: ...


@runtime_checkable
class AfterDelete(Protocol):
    def after_delete(self, ctx: Optional[QueryContext], db: Any) -> None: ...


@runtime_checkable
class AfterFind(Protocol):
    def after_find(self, ctx: Optional[QueryContext], db: Any) -> None: ...


_CAPABILITIES: Dict[Hook, type] = {
    Hook.BEFORE_CREATE: BeforeCreate,
    Hook.AFTER_CREATE: AfterCreate,
    Hook.BEFORE_UPDATE: BeforeUpdate,
    Hook.AFTER_UPDATE: AfterUpdate,
    Hook.BEFORE_DELETE: BeforeDelete,
    Hook.AFTER_DELETE: AfterDelete,
    Hook.AFTER_FIND: AfterFind,
}


def detect_hooks(cls: type) -> FrozenSet[Hook]:
    """Return the hook capabilities implemented by a record class."""

    return frozenset(
        hook for hook, capability in _CAPABILITIES.items() if issubclass(cls, capability)
    )


class HookInvoker:
    """Calls lifecycle hooks on records whose model declares them."""

    def run_before(
        self,
        hook: Hook,
        record: Any,
        hooks: FrozenSet[Hook],
        ctx: Optional[QueryContext],
        db: Any,
        *args: Any,
    ) -> None:
        """Run a before-hook; its exception aborts the caller unchanged."""

        if hook not in hooks:
            return
        getattr(record, hook.value)(ctx, db, *args)

    def run_after(
        self,
        hook: Hook,
        record: Any,
        hooks: FrozenSet[Hook],
        ctx: Optional[QueryContext],
        db: Any,
    ) -> None:
        """Run an after-hook; failures are logged and never propagate."""

        if hook not in hooks:
            return
        try:
            getattr(record, hook.value)(ctx, db)
        except Exception:
            logger.exception(
                "%s hook failed for %s", hook.value, type(record).__name__
            )
