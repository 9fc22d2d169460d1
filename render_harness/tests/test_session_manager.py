"""Tests for the render session lifecycle: prepare, render, reconfigure, dispose."""

from __future__ import annotations

import time

import numpy as np
import pytest

from render_harness.backends.raster import RasterBackend
from render_harness.backends.widgets import View
from render_harness.errors import ConfigError, RenderError, SessionStateError
from render_harness.runtime import capabilities as caps
from render_harness.runtime.clock import millis_to_nanos
from render_harness.session.manager import RenderSessionManager, SessionState
from src.utils.validators import DeviceProfile, RenderingMode, SessionConfig

DARK_BACKGROUND = (48, 48, 48, 255)
LIGHT_BACKGROUND = (250, 250, 250, 255)


class _NoAppCompatBackend(RasterBackend):
    @classmethod
    def declare_capabilities(cls, host) -> None:
        host.declare(caps.TIME_SOURCE, time.monotonic_ns)
        host.declare(caps.EDIT_MODE, lambda view=None: True)


# ---------------------------------------------------------------------------
# Prepare / render
# ---------------------------------------------------------------------------


class TestPrepare:
    def test_prepare_claims_slot(self, session, runtime) -> None:
        assert session.state == SessionState.PREPARED
        assert runtime.active_session is session
        assert runtime.registry.installed
        assert session.params.theme_name == "Theme.Material.NoActionBar.Fullscreen"
        assert "ComposeViewAdapter" in session.params.root_document

    def test_second_prepared_session_rejected(self, session, config, environment, runtime) -> None:
        other = RenderSessionManager(config, environment, runtime=runtime)
        with pytest.raises(SessionStateError):
            other.prepare()
        assert other.state == SessionState.UNINITIALIZED
        assert runtime.active_session is session

    def test_prepare_twice_rejected(self, session) -> None:
        with pytest.raises(SessionStateError):
            session.prepare()

    def test_render_requires_prepared(self, config, environment, runtime) -> None:
        manager = RenderSessionManager(config, environment, runtime=runtime)
        with pytest.raises(SessionStateError):
            manager.render(0)

    def test_render_returns_owned_copy(self, session) -> None:
        image = session.render(0)
        assert image.shape == (300, 200, 4)
        assert image.dtype == np.uint8
        assert tuple(image[150, 100]) == DARK_BACKGROUND

        image[:] = 0
        assert tuple(session.render(0)[0, 0]) == DARK_BACKGROUND

    def test_render_advances_clock(self, session) -> None:
        session.render(millis_to_nanos(40))
        assert session.clock.elapsed() == millis_to_nanos(40)

    def test_shrink_mode_root_document(self, device, environment, runtime) -> None:
        config = SessionConfig(device=device, rendering_mode=RenderingMode.SHRINK)
        manager = RenderSessionManager(config, environment, runtime=runtime)
        manager.prepare()
        try:
            assert manager.params.root_document.count('"wrap_content"') == 2
        finally:
            manager.dispose()

    def test_system_ui_chrome(self, device, environment, runtime) -> None:
        config = SessionConfig(device=device, theme="android:Theme.Material", show_system_ui=True)
        manager = RenderSessionManager(config, environment, runtime=runtime)
        manager.prepare()
        try:
            image = manager.render(0)
        finally:
            manager.dispose()

        assert image.shape == (300, 200, 4)
        assert tuple(image[0, 0]) == (0, 0, 0, 255)
        assert tuple(image[23, 100]) == (0, 0, 0, 255)
        assert tuple(image[24, 100]) == DARK_BACKGROUND
        assert tuple(image[300 - 48, 100]) == (0, 0, 0, 255)

    def test_widget_failure_raises_render_error(self, session) -> None:
        class Broken(View):
            def on_draw(self, canvas) -> None:
                raise RuntimeError("bad paint")

        prepared = session.prepare_view(Broken(width=10, height=10))
        with pytest.raises(RenderError) as excinfo:
            session.render(prepared.base_nanos)
        assert isinstance(excinfo.value.cause, RuntimeError)
        prepared.release()


# ---------------------------------------------------------------------------
# Reconfigure
# ---------------------------------------------------------------------------


class TestReconfigure:
    def test_all_none_leaves_session_untouched(self, session) -> None:
        backend = session.backend
        config = session.config
        with pytest.raises(ConfigError):
            session.reconfigure()
        assert session.state == SessionState.PREPARED
        assert session.backend is backend
        assert session.config is config

    @pytest.mark.parametrize("changes", [{"theme": ""}, {"rendering_mode": "diagonal"}])
    def test_rejected_config_keeps_live_session(self, session, runtime, changes) -> None:
        backend = session.backend
        config = session.config
        params = session.params
        session.log.error("broken", "pending failure")

        with pytest.raises(ConfigError):
            session.reconfigure(**changes)

        assert session.state == SessionState.PREPARED
        assert runtime.active_session is session
        assert session.backend is backend
        assert session.config is config
        assert session.params is params
        assert len(session.log.errors) == 1
        assert session.render(0).shape == (300, 200, 4)

    def test_reconfigure_device(self, session) -> None:
        old_backend = session.backend
        small = DeviceProfile(name="SMALL", width_px=100, height_px=120, density_dpi=160)

        session.reconfigure(device=small)

        assert session.backend is not old_backend
        assert session.config.device.name == "SMALL"
        assert session.render(0).shape == (120, 100, 4)

    def test_reconfigure_theme(self, session) -> None:
        session.reconfigure(theme="android:Theme.Material.Light")
        assert tuple(session.render(0)[10, 10]) == LIGHT_BACKGROUND

    def test_reconfigure_rendering_mode(self, session) -> None:
        session.reconfigure(rendering_mode=RenderingMode.SHRINK)
        assert session.config.rendering_mode == RenderingMode.SHRINK
        assert session.render(0).shape == (1, 1, 4)

    def test_reconfigure_keeps_clock_and_capabilities(self, session, runtime) -> None:
        session.advance(millis_to_nanos(50))
        session.reconfigure(theme="android:Theme.Material.Light")
        assert session.clock.elapsed() == millis_to_nanos(50)
        assert runtime.registry.installed
        assert runtime.active_session is session

    def test_reconfigure_flushes_errors(self, session) -> None:
        session.log.error("broken", "stale failure")
        session.reconfigure(theme="android:Theme.Material.Light")
        assert session.log.errors == []


# ---------------------------------------------------------------------------
# Dispose
# ---------------------------------------------------------------------------


class TestDispose:
    def test_dispose_releases_slot(self, session, config, environment, runtime) -> None:
        session.dispose()
        assert session.state == SessionState.DISPOSED
        assert runtime.active_session is None

        other = RenderSessionManager(config, environment, runtime=runtime)
        other.prepare()
        other.dispose()

    def test_dispose_raises_on_logged_errors(self, session, runtime) -> None:
        cause = ValueError("inflation failed")
        session.log.error("broken", "failure %d", 1, exception=cause)

        with pytest.raises(RenderError, match="failure 1") as excinfo:
            session.dispose()

        assert excinfo.value.cause is cause
        assert session.state == SessionState.DISPOSED
        assert runtime.active_session is None

    def test_dispose_twice_rejected(self, session) -> None:
        session.dispose()
        with pytest.raises(SessionStateError):
            session.dispose()

    def test_render_after_dispose_rejected(self, session) -> None:
        session.dispose()
        with pytest.raises(SessionStateError):
            session.render(0)


# ---------------------------------------------------------------------------
# App-compat inflation
# ---------------------------------------------------------------------------


class TestAppCompat:
    def test_factory_themes_buttons(self, session) -> None:
        button = session.inflate("Button", text="ok")
        assert button.all_caps
        assert button.display_text == "OK"
        assert button.background == session.context.theme.accent

    def test_disabled_uses_plain_widgets(self, device, environment, runtime) -> None:
        config = SessionConfig(device=device, app_compat_enabled=False)
        manager = RenderSessionManager(config, environment, runtime=runtime)
        manager.prepare()
        try:
            assert not manager.inflate("Button", text="ok").all_caps
        finally:
            manager.dispose()

    def test_missing_factory_is_tolerated(self, config, environment, runtime) -> None:
        manager = RenderSessionManager(
            config, environment, backend_cls=_NoAppCompatBackend, runtime=runtime
        )
        manager.prepare()
        try:
            assert not manager.inflate("Button", text="ok").all_caps
            missing = {m.capability for m in runtime.registry.missing}
            assert caps.FONT_LOOKUP in missing
            assert caps.MATRIX_MULTIPLY_MM in missing
        finally:
            manager.dispose()
