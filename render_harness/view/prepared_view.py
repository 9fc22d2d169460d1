"""A content view attached to a session's root container, ready to capture.

Construction does all the attach work once; ``capture_at`` can then be
called any number of times with non-decreasing offsets, and ``release``
undoes the attach exactly once.

Each prepared view owns a sub-range of the process clock starting at the
clock's elapsed time when it was attached, so the clock keeps moving forward
across views while each view still sees its own captures at offsets from 0.
"""

from __future__ import annotations

import logging
import weakref
from typing import TYPE_CHECKING, Any

import numpy as np

from render_harness.errors import ConfigError, SessionStateError
from render_harness.runtime.clock import millis_to_nanos
from render_harness.view.accessibility import AccessibilityValidator, log_issues
from render_harness.view.lifecycle import (
    HarnessLifecycleOwner,
    LifecycleState,
    install_view_tree_owners,
)

if TYPE_CHECKING:
    from render_harness.session.manager import RenderSessionManager

logger = logging.getLogger(__name__)

# Root container id expected by composition hosts
CONTENT_ROOT_ID = "content"


def check_accessibility_config(config: Any) -> None:
    """Raise :class:`ConfigError` when validation and extensions are combined."""
    if config.validate_accessibility and config.extensions:
        raise ConfigError(
            "Accessibility validation cannot be combined with render extensions: "
            "extensions may change the view hierarchy being validated"
        )


class PreparedView:
    """Attach ``view`` to ``session`` and capture it at chosen offsets.

    Parameters
    ----------
    session : RenderSessionManager
        A prepared session; only a weak reference is kept.
    view : View
        Content view. Render extensions from the session config are folded
        over it before it is attached.

    Raises
    ------
    ConfigError
        If accessibility validation is enabled together with extensions.
    """

    def __init__(self, session: "RenderSessionManager", view: Any) -> None:
        config = session.config
        check_accessibility_config(config)

        backend = session.backend
        for extension in config.extensions:
            view = extension.render_view(view)

        self._session_ref = weakref.ref(session)
        self._backend = backend
        self._root = backend.root_container
        self._owner: HarnessLifecycleOwner | None = None
        self._validator = AccessibilityValidator()
        self._released = False
        self.view = view

        if backend.has_composition_runtime:
            self._root.view_id = CONTENT_ROOT_ID

        if backend.supports_lifecycle_owner:
            self._owner = HarnessLifecycleOwner()
            install_view_tree_owners(self._root, self._owner)
            self._owner.lifecycle.move_to(LifecycleState.RESUMED)

        self._root.add_view(view)

        self.base_nanos = session.clock.elapsed()
        session.advance(self.base_nanos)
        logger.debug(
            "Prepared %s at clock base %d ns", type(view).__name__, self.base_nanos
        )

    @property
    def released(self) -> bool:
        return self._released

    @property
    def lifecycle_owner(self) -> HarnessLifecycleOwner | None:
        return self._owner

    def _session(self) -> "RenderSessionManager":
        session = self._session_ref()
        if session is None:
            raise SessionStateError("The session of this prepared view no longer exists")
        if session.backend is not self._backend:
            raise SessionStateError(
                "The session was reconfigured after this view was prepared"
            )
        return session

    def capture_at(self, time_ms: int) -> np.ndarray:
        """Render at ``time_ms`` past this view's clock base and return the raster.

        Raises
        ------
        SessionStateError
            If the view was released or its session is gone or rebuilt.
        RenderError
            If the render pass fails.
        """
        if self._released:
            raise SessionStateError("Cannot capture a released view")
        session = self._session()
        config = session.config
        check_accessibility_config(config)

        image = session.render(self.base_nanos + millis_to_nanos(time_ms))

        if config.validate_accessibility:
            issues = self._validator.validate(self._root, config.device.density_scale)
            log_issues(issues, session.log)
        return image

    def release(self) -> None:
        """Detach the view and drop per-view runtime state. Idempotent."""
        if self._released:
            return
        self._released = True

        backend = self._backend
        self._root.remove_view(self.view)
        if self._owner is not None:
            self._owner.lifecycle.move_to(LifecycleState.DESTROYED)
        backend.reset_animation_cache()

        if backend.has_composition_runtime:
            session = self._session_ref()
            # composition hosts post their disposal on detach
            if session is not None:
                session.clock.drain(backend.scheduler)
        logger.debug("Released %s", type(self.view).__name__)

    def __enter__(self) -> "PreparedView":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
