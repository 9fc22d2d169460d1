"""Render session manager: prepare → render → reconfigure → dispose.

Owns the single backend session of a test and the configuration it was
built from. Only one manager per process may be prepared at a time; the
slot lives in :mod:`render_harness.runtime.process`.

State machine::

    UNINITIALIZED --prepare()--> PREPARED --dispose()--> DISPOSED
                                   |   ^
                                   +---+ reconfigure(device=, theme=, rendering_mode=)

Transitions are not reentrant. ``reconfigure`` rebuilds the backend from a
merged configuration and leaves the capability registry and the virtual
clock alone.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from enum import Enum, auto
from typing import Any, Iterator

import numpy as np

from render_harness.configs.environment import Environment, detect_environment
from render_harness.configs.loader import default_session_config
from render_harness.errors import ConfigError, RenderError, SessionStateError
from render_harness.runtime.capabilities import APP_COMPAT_VIEW_FACTORY
from render_harness.runtime.clock import VirtualClock
from render_harness.runtime.process import ProcessRuntime, get_runtime
from render_harness.session.backend import RenderBackend, RenderResult, RenderStatus
from render_harness.session.diagnostics import SessionLog
from render_harness.session.params import (
    SessionParams,
    SessionParamsBuilder,
    build_root_document,
)
from src.utils.logging_config import pop_context, push_context
from src.utils.validators import DeviceProfile, RenderingMode, SessionConfig

logger = logging.getLogger(__name__)


class SessionState(Enum):
    UNINITIALIZED = auto()
    PREPARED = auto()
    DISPOSED = auto()


class RenderSessionManager:
    """Lifecycle owner of one render backend session.

    Parameters
    ----------
    config : SessionConfig, optional
        Session configuration; defaults to NEXUS_5 / NORMAL.
    environment : Environment, optional
        Build inputs; detected from ``RENDER_HARNESS_*`` when omitted.
    backend_cls : type[RenderBackend], optional
        Backend implementation; defaults to the raster backend.
    runtime : ProcessRuntime, optional
        Process state; defaults to the process singleton.
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        environment: Environment | None = None,
        backend_cls: type[RenderBackend] | None = None,
        runtime: ProcessRuntime | None = None,
    ) -> None:
        if backend_cls is None:
            from render_harness.backends.raster import RasterBackend
            backend_cls = RasterBackend

        self._config = config if config is not None else default_session_config()
        self._environment = environment if environment is not None else detect_environment()
        self._backend_cls = backend_cls
        self._runtime = runtime if runtime is not None else get_runtime()
        self.log = SessionLog()

        self._state = SessionState.UNINITIALIZED
        self._backend: RenderBackend | None = None
        self._builder: SessionParamsBuilder | None = None
        self._params: SessionParams | None = None
        self._in_transition: str | None = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def params(self) -> SessionParams | None:
        return self._params

    @property
    def clock(self) -> VirtualClock:
        return self._runtime.clock

    @property
    def runtime(self) -> ProcessRuntime:
        return self._runtime

    @property
    def backend(self) -> RenderBackend:
        self._require_prepared("access the backend of")
        return self._backend

    @property
    def context(self) -> Any:
        return self.backend.context

    def inflate(self, name: str, **attrs: Any) -> Any:
        """Create a view through the session's inflater."""
        return self.backend.inflate_view(name, **attrs)

    def prepare_view(self, view: Any):
        """Attach ``view`` under the root container; see :class:`PreparedView`."""
        from render_harness.view.prepared_view import PreparedView
        return PreparedView(self, view)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    @contextmanager
    def _transition(self, name: str) -> Iterator[None]:
        if self._in_transition is not None:
            raise SessionStateError(
                f"Cannot {name} while '{self._in_transition}' is in progress"
            )
        self._in_transition = name
        try:
            yield
        finally:
            self._in_transition = None

    def _require_prepared(self, action: str) -> None:
        if self._in_transition is not None:
            raise SessionStateError(
                f"Cannot {action} session while '{self._in_transition}' is in progress"
            )
        if self._state != SessionState.PREPARED:
            raise SessionStateError(
                f"Cannot {action} session in state {self._state.name}"
            )

    def prepare(self) -> None:
        """Install capabilities (once), claim the slot and start the backend."""
        with self._transition("prepare"):
            if self._state != SessionState.UNINITIALIZED:
                raise SessionStateError(
                    f"Cannot prepare session in state {self._state.name}"
                )

            self._runtime.bootstrap(self._backend_cls)
            self._runtime.claim(self)
            try:
                self._builder = SessionParamsBuilder.from_environment(self._environment)
                self._params = self._build_params()
                self._backend = self._start_backend(self._params)
            except BaseException:
                self._runtime.release(self)
                raise

            self._state = SessionState.PREPARED
            push_context(device=self._config.device.name, theme=self._params.theme_name)
            logger.info(
                "Session prepared: device=%s theme=%s mode=%s",
                self._config.device.name,
                self._config.theme,
                self._config.rendering_mode.name,
            )

    def render(self, time_nanos: int) -> np.ndarray:
        """Advance virtual time to ``time_nanos`` and run one render pass.

        Returns
        -------
        np.ndarray
            Raw (H, W, 4) uint8 RGBA raster, a copy owned by the caller.

        Raises
        ------
        RenderError
            If the backend reports ``ERROR_UNKNOWN``.
        """
        self._require_prepared("render")
        backend = self._backend
        with self.clock.at(time_nanos, backend.scheduler):
            result = backend.render(force_measure=True)
            if result.status == RenderStatus.ERROR_UNKNOWN:
                raise RenderError(
                    f"Render pass failed: {result.message or 'unknown error'}",
                    cause=result.exception,
                ) from result.exception
            if not result.is_success:
                logger.warning("Render pass returned %s: %s", result.status.name, result.message)
            return backend.image.copy()

    def advance(self, time_nanos: int) -> None:
        """Move virtual time and drain callbacks without rendering."""
        self._require_prepared("advance")
        self.clock.advance_to(time_nanos, self._backend.scheduler)

    def reconfigure(
        self,
        device: DeviceProfile | None = None,
        theme: str | None = None,
        rendering_mode: RenderingMode | None = None,
    ) -> None:
        """Rebuild the backend with the non-None fields merged into the config.

        Raises
        ------
        ConfigError
            If every argument is None or the merged configuration is invalid;
            the session is left untouched.
        """
        if device is None and theme is None and rendering_mode is None:
            raise ConfigError("reconfigure requires at least one non-null argument")

        with self._transition("reconfigure"):
            if self._state != SessionState.PREPARED:
                raise SessionStateError(
                    f"Cannot reconfigure session in state {self._state.name}"
                )

            try:
                config = self._config.merged(
                    device=device, theme=theme, rendering_mode=rendering_mode
                )
            except ValueError as exc:
                raise ConfigError(f"Invalid session configuration: {exc}") from exc

            previous = (self._config, self._builder)
            self._config = config
            try:
                params = self._build_params()
            except ConfigError:
                self._config, self._builder = previous
                raise

            self.log.flush_errors()
            self._stop_backend()

            try:
                self._params = params
                self._backend = self._start_backend(params)
            except BaseException:
                self._state = SessionState.DISPOSED
                self._runtime.release(self)
                pop_context(keys=["device", "theme"])
                raise

            push_context(device=self._config.device.name, theme=self._params.theme_name)
            logger.info(
                "Session reconfigured: device=%s theme=%s mode=%s",
                self._config.device.name,
                self._config.theme,
                self._config.rendering_mode.name,
            )

    def dispose(self, check_errors: bool = True) -> None:
        """Release the backend and fail if the session logged errors.

        With ``check_errors=False`` recorded errors are still logged but not
        raised.

        Raises
        ------
        RenderError
            If any error-level diagnostic was recorded during the session.
        """
        with self._transition("dispose"):
            if self._state != SessionState.PREPARED:
                raise SessionStateError(
                    f"Cannot dispose session in state {self._state.name}"
                )
            try:
                self._stop_backend()
            finally:
                self._state = SessionState.DISPOSED
                self._runtime.release(self)
                pop_context(keys=["device", "theme"])

            logger.info("Session disposed")
            self.log.dump()
            if check_errors:
                self.log.assert_no_errors()

    # ------------------------------------------------------------------
    # Backend plumbing
    # ------------------------------------------------------------------

    def _build_params(self) -> SessionParams:
        cfg = self._config
        self._builder = self._builder.copy(
            # a fresh document per build; parsers consume it
            root_document=build_root_document(
                cfg.rendering_mode, self._backend_cls.has_composition_runtime
            ),
            device=cfg.device,
            rendering_mode=cfg.rendering_mode,
            supports_rtl=cfg.supports_rtl,
            decor=cfg.show_system_ui,
        ).with_theme(cfg.theme)
        return self._builder.build()

    def _start_backend(self, params: SessionParams) -> RenderBackend:
        backend = self._backend_cls(
            params, self._runtime.host, self.log, first_frame_executed=True
        )
        try:
            self._check(backend.init(params.timeout_ms), "init")
            backend.set_default_density(params.device.density_dpi)
            # needs the inflater created by init()
            if self._config.app_compat_enabled:
                self._initialize_app_compat(backend)
            self._check(backend.inflate(), "inflate")
        except BaseException:
            backend.release()
            backend.dispose()
            raise
        return backend

    def _stop_backend(self) -> None:
        backend, self._backend = self._backend, None
        if backend is None:
            return
        try:
            backend.release()
        finally:
            backend.dispose()

    def _initialize_app_compat(self, backend: RenderBackend) -> None:
        host = self._runtime.host
        if not host.provides(APP_COMPAT_VIEW_FACTORY):
            self.log.verbose("AppCompat not found in runtime")
            return
        backend.install_view_factory(host.resolve(APP_COMPAT_VIEW_FACTORY))

    @staticmethod
    def _check(result: RenderResult, stage: str) -> None:
        if not result.is_success:
            raise RenderError(
                f"Backend {stage} failed ({result.status.name}): {result.message}",
                cause=result.exception,
            )
