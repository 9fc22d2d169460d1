"""Tests for the raster backend: themes, widgets, layout and rendering modes."""

from __future__ import annotations

import numpy as np
import pytest

from render_harness.backends.raster import RasterBackend
from render_harness.backends.themes import DEFAULT_THEME, THEMES, resolve_theme, to_rgba
from render_harness.backends.widgets import (
    MATCH_PARENT,
    ColorBox,
    FrameLayout,
    ImageView,
    LinearLayout,
    TextView,
    View,
)
from render_harness.errors import ConfigError
from render_harness.runtime.substitutes import StubService
from render_harness.session.backend import RenderStatus
from render_harness.session.diagnostics import SessionLog
from render_harness.session.manager import RenderSessionManager
from src.utils.validators import RenderingMode, SessionConfig

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)
BACKGROUND = (48, 48, 48, 255)


def _render(session, view, time_ms: int = 0) -> np.ndarray:
    with session.prepare_view(view) as prepared:
        return prepared.capture_at(time_ms)


def _prepared(device, environment, runtime, **overrides) -> RenderSessionManager:
    manager = RenderSessionManager(SessionConfig(device=device, **overrides), environment, runtime=runtime)
    manager.prepare()
    return manager


def _row(*colors: str, **kwargs) -> LinearLayout:
    return LinearLayout(
        *(ColorBox(color, width=10, height=10) for color in colors),
        orientation="horizontal",
        **kwargs,
    )


# ---------------------------------------------------------------------------
# Themes
# ---------------------------------------------------------------------------


class TestThemes:
    def test_framework_prefix_is_optional(self) -> None:
        assert resolve_theme("android:Theme.Material.Light") == (THEMES["Theme.Material.Light"], True)
        assert resolve_theme("Theme.Material.Light") == (THEMES["Theme.Material.Light"], True)

    def test_longest_known_prefix(self) -> None:
        theme, exact = resolve_theme("android:Theme.Material.Light.NoActionBar.Custom")
        assert theme is THEMES["Theme.Material.Light.NoActionBar"]
        assert not exact

    def test_unknown_theme_falls_back(self) -> None:
        assert resolve_theme("Theme.MyApp") == (DEFAULT_THEME, False)

    def test_to_rgba(self) -> None:
        assert to_rgba("#FF0000") == RED
        assert to_rgba((1, 2, 3)) == (1, 2, 3, 255)
        assert to_rgba([1, 2, 3, 4]) == (1, 2, 3, 4)
        with pytest.raises(ValueError):
            to_rgba((1, 2))

    def test_unknown_theme_warns(self, device, environment, runtime) -> None:
        session = _prepared(device, environment, runtime, theme="Theme.MyApp")
        try:
            assert [d.tag for d in session.log.warnings] == ["theme"]
            assert tuple(session.render(0)[0, 0]) == DEFAULT_THEME.window_background
        finally:
            session.dispose()


# ---------------------------------------------------------------------------
# Backend contract
# ---------------------------------------------------------------------------


class TestBackendContract:
    def test_render_before_inflate(self, session, runtime) -> None:
        backend = RasterBackend(session.params, runtime.host, SessionLog())
        backend.init(1000)
        assert backend.render().status == RenderStatus.ERROR_NOT_INFLATED
        with pytest.raises(RuntimeError):
            backend.image

    def test_invalid_timeout(self, session, runtime) -> None:
        backend = RasterBackend(session.params, runtime.host, SessionLog())
        assert backend.init(0).status == RenderStatus.ERROR_TIMEOUT

    def test_conflicting_view_factory(self, session) -> None:
        with pytest.raises(ConfigError):
            session.backend.install_view_factory(lambda name, context, attrs: None)

    def test_unknown_widget(self, session) -> None:
        with pytest.raises(ValueError, match="Unknown view type"):
            session.inflate("RecyclerView")

    def test_context_uses_substituted_capabilities(self, session) -> None:
        context = session.context
        assert context.is_in_edit_mode() is False
        assert isinstance(context.get_system_service("window"), StubService)
        assert context.now_nanos() == session.clock.now()


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------


class TestLayout:
    def test_frame_layout_stacks_children(self, session) -> None:
        content = FrameLayout(
            ColorBox("#FF0000", width=20, height=20),
            ColorBox("#0000FF", width=10, height=10),
            width=MATCH_PARENT,
            height=MATCH_PARENT,
        )
        image = _render(session, content)
        assert tuple(image[5, 5]) == BLUE
        assert tuple(image[15, 15]) == RED
        assert tuple(image[25, 25]) == BACKGROUND

    def test_vertical_linear_layout_with_spacing(self, session) -> None:
        column = LinearLayout(
            ColorBox("#FF0000", width=10, height=10),
            ColorBox("#0000FF", width=10, height=10),
            spacing=5,
        )
        image = _render(session, column)
        assert tuple(image[5, 5]) == RED
        assert tuple(image[12, 5]) == BACKGROUND
        assert tuple(image[20, 5]) == BLUE

    def test_horizontal_row_ltr(self, session) -> None:
        image = _render(session, _row("#FF0000", "#0000FF"))
        assert tuple(image[5, 5]) == RED
        assert tuple(image[5, 15]) == BLUE

    def test_rtl_row_is_mirrored(self, device, environment, runtime) -> None:
        session = _prepared(device, environment, runtime, supports_rtl=True)
        try:
            image = _render(session, _row("#FF0000", "#0000FF", layout_direction="rtl"))
        finally:
            session.dispose()
        assert tuple(image[5, 5]) == BLUE
        assert tuple(image[5, 15]) == RED

    def test_rtl_ignored_without_support(self, session) -> None:
        image = _render(session, _row("#FF0000", "#0000FF", layout_direction="rtl"))
        assert tuple(image[5, 5]) == RED

    def test_invalid_layout_direction(self) -> None:
        with pytest.raises(ValueError):
            View(layout_direction="sideways")

    def test_view_can_join_only_one_parent(self) -> None:
        box = ColorBox()
        FrameLayout(box)
        with pytest.raises(ValueError, match="already has a parent"):
            FrameLayout(box)


# ---------------------------------------------------------------------------
# Rendering modes
# ---------------------------------------------------------------------------


class TestRenderingModes:
    def test_shrink_wraps_content(self, device, environment, runtime) -> None:
        session = _prepared(device, environment, runtime, rendering_mode=RenderingMode.SHRINK)
        try:
            image = _render(session, ColorBox("#FF0000", width=50, height=40))
        finally:
            session.dispose()
        assert image.shape == (40, 50, 4)
        assert np.all(image == np.array(RED, dtype=np.uint8))

    def test_v_scroll_expands_height(self, device, environment, runtime) -> None:
        session = _prepared(device, environment, runtime, rendering_mode=RenderingMode.V_SCROLL)
        try:
            column = LinearLayout(*(ColorBox(width=100, height=100) for _ in range(4)))
            tall = _render(session, column)
            short = _render(session, ColorBox(width=100, height=100))
        finally:
            session.dispose()
        assert tall.shape == (400, 200, 4)
        assert short.shape == (300, 200, 4)

    def test_h_scroll_expands_width(self, device, environment, runtime) -> None:
        session = _prepared(device, environment, runtime, rendering_mode=RenderingMode.H_SCROLL)
        try:
            row = LinearLayout(
                *(ColorBox(width=100, height=100) for _ in range(3)), orientation="horizontal"
            )
            image = _render(session, row)
        finally:
            session.dispose()
        assert image.shape == (300, 300, 4)


# ---------------------------------------------------------------------------
# Widgets
# ---------------------------------------------------------------------------


class TestWidgets:
    def test_text_is_drawn(self, session) -> None:
        image = _render(session, TextView("Hello", text_color="#FFFFFF", text_size_sp=20))
        region = image[0:30, 0:80]
        assert np.any(np.any(region != np.array(BACKGROUND, dtype=np.uint8), axis=-1))

    def test_text_wraps_its_measure(self, session) -> None:
        text = TextView("Hello")
        with session.prepare_view(text) as prepared:
            prepared.capture_at(0)
            width, height = text.measured
        assert 0 < width < 200
        assert 0 < height < 300

    def test_image_view_scales_bitmap(self, session) -> None:
        bitmap = np.zeros((2, 2, 3), dtype=np.uint8)
        bitmap[0, 0] = (255, 0, 0)
        bitmap[1, 1] = (0, 0, 255)
        image = _render(session, ImageView(bitmap, width=20, height=20, content_description="grid"))
        assert tuple(image[2, 2]) == RED
        assert tuple(image[12, 12]) == BLUE
        assert tuple(image[2, 12]) == (0, 0, 0, 255)

    def test_image_view_rejects_bad_bitmap(self) -> None:
        with pytest.raises(ValueError):
            ImageView(np.zeros((2, 2), dtype=np.uint8))

    def test_invisible_view_not_drawn(self, session) -> None:
        image = _render(session, ColorBox("#FF0000", width=10, height=10, visible=False))
        assert tuple(image[5, 5]) == BACKGROUND
