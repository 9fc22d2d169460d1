"""Lifecycle, saved-state and back-press owners for attached view trees.

Some views (composition hosts in particular) refuse to draw unless an owner
for each of these concerns can be found up the view tree. The prepared view
installs one :class:`HarnessLifecycleOwner` on the root container and moves
it to ``RESUMED`` before the content view is attached.
"""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

LIFECYCLE_OWNER_KEY = "lifecycle_owner"
SAVED_STATE_OWNER_KEY = "saved_state_registry_owner"
BACK_PRESS_OWNER_KEY = "back_press_dispatcher_owner"


class LifecycleState(IntEnum):
    DESTROYED = 0
    INITIALIZED = 1
    CREATED = 2
    STARTED = 3
    RESUMED = 4

    def is_at_least(self, other: "LifecycleState") -> bool:
        return self >= other


LifecycleObserver = Callable[[LifecycleState], None]


class LifecycleRegistry:
    """Current lifecycle state plus observers notified on every step."""

    def __init__(self) -> None:
        self._state = LifecycleState.INITIALIZED
        self._observers: list[LifecycleObserver] = []

    @property
    def current_state(self) -> LifecycleState:
        return self._state

    def add_observer(self, observer: LifecycleObserver) -> None:
        self._observers.append(observer)

    def remove_observer(self, observer: LifecycleObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def move_to(self, state: LifecycleState) -> None:
        """Step through every intermediate state up or down to ``state``."""
        if self._state == LifecycleState.DESTROYED and state != LifecycleState.DESTROYED:
            raise ValueError("A destroyed lifecycle cannot be moved again")

        if state == LifecycleState.DESTROYED:
            steps = [LifecycleState(s) for s in range(self._state - 1, LifecycleState.CREATED - 1, -1)]
            steps.append(LifecycleState.DESTROYED)
        else:
            direction = 1 if state >= self._state else -1
            steps = [
                LifecycleState(s)
                for s in range(self._state + direction, state + direction, direction)
            ]

        for step in steps:
            self._state = step
            for observer in list(self._observers):
                observer(step)
        logger.debug("Lifecycle moved to %s", self._state.name)


class SavedStateRegistry:
    """Bundle providers keyed by name; nothing is ever restored off-device."""

    def __init__(self) -> None:
        self._providers: dict[str, Callable[[], dict]] = {}
        self.is_restored = False

    def perform_restore(self, saved: Optional[dict] = None) -> None:
        self.is_restored = True

    def register_provider(self, key: str, provider: Callable[[], dict]) -> None:
        if key in self._providers:
            raise ValueError(f"SavedStateProvider with key '{key}' is already registered")
        self._providers[key] = provider

    def unregister_provider(self, key: str) -> None:
        self._providers.pop(key, None)

    def consume_restored_state(self, key: str) -> Optional[dict]:
        if not self.is_restored:
            raise RuntimeError("Saved state can only be consumed after restore")
        return None

    def save_state(self) -> dict:
        return {key: provider() for key, provider in self._providers.items()}


class BackPressDispatcher:
    """Dispatches back presses to the most recently added enabled callback."""

    def __init__(self) -> None:
        self._callbacks: list[Callable[[], Any]] = []

    def add_callback(self, callback: Callable[[], Any]) -> None:
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], Any]) -> None:
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    @property
    def has_enabled_callbacks(self) -> bool:
        return bool(self._callbacks)

    def on_back_pressed(self) -> bool:
        if not self._callbacks:
            return False
        self._callbacks[-1]()
        return True


class HarnessLifecycleOwner:
    """Single object acting as lifecycle, saved-state and back-press owner."""

    def __init__(self) -> None:
        self.lifecycle = LifecycleRegistry()
        self.saved_state_registry = SavedStateRegistry()
        self.on_back_pressed_dispatcher = BackPressDispatcher()
        self.saved_state_registry.perform_restore(None)

    @property
    def state(self) -> LifecycleState:
        return self.lifecycle.current_state


def install_view_tree_owners(view: Any, owner: HarnessLifecycleOwner) -> None:
    """Register ``owner`` for all three owner lookups on ``view``."""
    view.tree_owners[LIFECYCLE_OWNER_KEY] = owner
    view.tree_owners[SAVED_STATE_OWNER_KEY] = owner
    view.tree_owners[BACK_PRESS_OWNER_KEY] = owner
