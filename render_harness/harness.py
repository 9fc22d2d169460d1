"""Test-facing facade over session, capturer and snapshot handler.

Usage::

    from render_harness import Harness

    with Harness(test_name="test_button", class_name="ButtonTest") as harness:
        button = harness.inflate("Button", text="Launch", view_id="launch")
        harness.snapshot(button, name="idle")
        harness.gif(harness.inflate("AnimatedBox"), end_ms=1000, fps=30)
        harness.unsafe_update_config(device="PIXEL_5")
        harness.snapshot(lambda: harness.inflate("TextView", text="composed"))

A callable passed instead of a view is treated as a composable and hosted in
a :class:`ComposeHost`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Union

from render_harness.backends.widgets import ComposeHost, View
from render_harness.capture.capturer import SnapshotCapturer
from render_harness.capture.handlers import SnapshotHandler, TestRecord, determine_handler
from render_harness.configs.environment import Environment
from render_harness.configs.loader import apply_logging_config, get_device, load_session_config
from render_harness.session.backend import RenderBackend
from render_harness.session.manager import RenderSessionManager, SessionState
from src.utils.validators import DeviceProfile, RenderingMode, SessionConfig

logger = logging.getLogger(__name__)


class Harness:
    """One render session plus the handler its captures go to.

    Parameters
    ----------
    config : SessionConfig, optional
        Session configuration; defaults to NEXUS_5 / NORMAL.
    handler : SnapshotHandler, optional
        Defaults to :func:`determine_handler` at ``prepare()``.
    test_name, class_name : str
        Used to name output files.
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        *,
        handler: Optional[SnapshotHandler] = None,
        environment: Optional[Environment] = None,
        backend_cls: Optional[type[RenderBackend]] = None,
        test_name: str = "snapshot",
        class_name: str = "",
    ) -> None:
        self.session = RenderSessionManager(config, environment, backend_cls)
        self.handler = handler
        self.test_name = test_name
        self.class_name = class_name
        self._capturer = SnapshotCapturer(self.session)

    @classmethod
    def from_config_file(
        cls, path: Union[str, Path], *, configure_logging: bool = False, **kwargs: Any
    ) -> "Harness":
        """Build from a harness.v1.yaml file.

        With ``configure_logging`` the file's ``logging`` section is applied
        to the root logger first.
        """
        if configure_logging:
            apply_logging_config(path)
        return cls(load_session_config(path), **kwargs)

    # -- lifecycle ----------------------------------------------------------

    def prepare(self) -> None:
        self.session.prepare()
        if self.handler is None:
            self.handler = determine_handler(self.session.config.max_percent_difference)

    def close(self, check_errors: bool = True) -> None:
        """Close the handler and dispose the session.

        Raises
        ------
        RenderError
            If the session logged errors and ``check_errors`` is set.
        """
        try:
            if self.handler is not None:
                self.handler.close()
        finally:
            self.session.dispose(check_errors=check_errors)

    def __enter__(self) -> "Harness":
        self.prepare()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        elif self.session.state == SessionState.PREPARED:
            # the body already failed; diagnostics are logged, not raised
            self.close(check_errors=False)

    # -- accessors ----------------------------------------------------------

    @property
    def config(self) -> SessionConfig:
        return self.session.config

    @property
    def context(self) -> Any:
        return self.session.context

    def inflate(self, name: str, **attrs: Any) -> View:
        return self.session.inflate(name, **attrs)

    # -- captures -----------------------------------------------------------

    def snapshot(self, view: Any, name: Optional[str] = None, offset_ms: int = 0) -> None:
        snapshot = self._capturer.snapshot(self._as_view(view), offset_ms)
        self.handler.handle_snapshot(snapshot, self._record(name))

    def gif(
        self,
        view: Any,
        name: Optional[str] = None,
        start_ms: int = 0,
        end_ms: int = 500,
        fps: int = 30,
    ) -> None:
        snapshot = self._capturer.gif(self._as_view(view), start_ms, end_ms, fps)
        self.handler.handle_snapshot(snapshot, self._record(name))

    def unsafe_update_config(
        self,
        device: Optional[Union[DeviceProfile, str]] = None,
        theme: Optional[str] = None,
        rendering_mode: Optional[Union[RenderingMode, str]] = None,
    ) -> None:
        """Rebuild the session with the given fields changed.

        Views inflated before the call belong to the old session.
        """
        if isinstance(device, str):
            device = get_device(device)
        if isinstance(rendering_mode, str):
            rendering_mode = RenderingMode[rendering_mode.upper()]
        self.session.reconfigure(device=device, theme=theme, rendering_mode=rendering_mode)

    # -- helpers ------------------------------------------------------------

    @staticmethod
    def _as_view(view: Any) -> View:
        if isinstance(view, View):
            return view
        if callable(view):
            return ComposeHost(view)
        raise TypeError(f"Expected a View or a composable callable, got {type(view).__name__}")

    def _record(self, name: Optional[str]) -> TestRecord:
        return TestRecord(test_name=self.test_name, class_name=self.class_name, name=name)
