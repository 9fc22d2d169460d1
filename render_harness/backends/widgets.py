"""Minimal widget set drawn by the raster backend.

Views are measured in pixels with dp-valued attributes converted through the
device density. ``MATCH_PARENT`` fills the available size; ``WRAP_CONTENT``
takes the content size. On an unbounded axis (expanding rendering modes)
both resolve to the content size.

Layout direction is per view (``"inherit"``, ``"ltr"``, ``"rtl"``) and is only
honoured when the session supports RTL.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterator, Optional

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from render_harness.backends.themes import Color, ColorLike, Theme, to_rgba
from render_harness.runtime.capabilities import (
    EDIT_MODE,
    FONT_LOOKUP,
    SERVICE_LOOKUP,
    TIME_SOURCE,
)
from render_harness.view.lifecycle import LIFECYCLE_OWNER_KEY, LifecycleState

logger = logging.getLogger(__name__)

MATCH_PARENT = -1
WRAP_CONTENT = -2

_LAYOUT_DIRECTIONS = ("inherit", "ltr", "rtl")


# ---------------------------------------------------------------------------
# Context and canvas
# ---------------------------------------------------------------------------


class RenderContext:
    """Per-session resources handed to every attached view."""

    def __init__(self, params: Any, host: Any, scheduler: Any, log: Any, theme: Theme) -> None:
        self.params = params
        self.device = params.device
        self.host = host
        self.scheduler = scheduler
        self.log = log
        self.theme = theme
        self.supports_rtl = params.supports_rtl
        self.resources_dir = params.resources_dir
        self.sdk_version = params.sdk_version
        self.package_name = params.package_name
        self.bitmap_density = params.device.density_dpi
        self._fonts: dict[tuple[Optional[str], int], Any] = {}

    def dp(self, value: float) -> int:
        return self.device.dp_to_px(value)

    def now_nanos(self) -> int:
        return self.host.resolve(TIME_SOURCE)()

    def is_in_edit_mode(self, view: Any = None) -> bool:
        return bool(self.host.resolve(EDIT_MODE)(view))

    def get_system_service(self, name: str) -> Any:
        return self.host.resolve(SERVICE_LOOKUP)(name)

    def font(self, name: Optional[str], size_px: int) -> Any:
        key = (name, size_px)
        if key not in self._fonts:
            if self.host.provides(FONT_LOOKUP):
                self._fonts[key] = self.host.resolve(FONT_LOOKUP)(self, name, size_px)
            else:
                self._fonts[key] = ImageFont.load_default(size=size_px)
        return self._fonts[key]


class Canvas:
    """RGBA image plus a blending draw handle."""

    def __init__(self, image: Image.Image) -> None:
        self.image = image
        self.draw = ImageDraw.Draw(image, "RGBA")

    def fill_rect(self, bounds: tuple[int, int, int, int], color: Color) -> None:
        left, top, right, bottom = bounds
        if right > left and bottom > top:
            self.draw.rectangle((left, top, right - 1, bottom - 1), fill=color)


# ---------------------------------------------------------------------------
# Base views
# ---------------------------------------------------------------------------


class View:
    """Leaf view: optional background, padding and accessibility attributes."""

    image_like = False

    def __init__(
        self,
        *,
        view_id: Optional[str] = None,
        width: int = WRAP_CONTENT,
        height: int = WRAP_CONTENT,
        background: Optional[ColorLike] = None,
        padding: int = 0,
        clickable: bool = False,
        content_description: Optional[str] = None,
        layout_direction: str = "inherit",
        visible: bool = True,
    ) -> None:
        if layout_direction not in _LAYOUT_DIRECTIONS:
            raise ValueError(
                f"layout_direction must be one of {_LAYOUT_DIRECTIONS}, got {layout_direction!r}"
            )
        self.view_id = view_id
        self.width = width
        self.height = height
        self.background = to_rgba(background) if background is not None else None
        self.padding = padding
        self.clickable = clickable
        self.content_description = content_description
        self.layout_direction = layout_direction
        self.visible = visible

        self.parent: Optional[ViewGroup] = None
        self.context: Optional[RenderContext] = None
        self.tree_owners: dict[str, Any] = {}
        self.measured = (0, 0)
        self.bounds = (0, 0, 0, 0)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(id={self.view_id!r})"

    # -- tree ---------------------------------------------------------------

    @property
    def attached(self) -> bool:
        return self.context is not None

    @property
    def children(self) -> tuple["View", ...]:
        return ()

    def iter_tree(self) -> Iterator["View"]:
        yield self
        for child in self.children:
            yield from child.iter_tree()

    def find_view_by_id(self, view_id: str) -> Optional["View"]:
        for view in self.iter_tree():
            if view.view_id == view_id:
                return view
        return None

    def find_tree_owner(self, key: str) -> Any:
        view: Optional[View] = self
        while view is not None:
            if key in view.tree_owners:
                return view.tree_owners[key]
            view = view.parent
        return None

    def is_rtl(self) -> bool:
        if self.context is None or not self.context.supports_rtl:
            return False
        view: Optional[View] = self
        while view is not None:
            if view.layout_direction != "inherit":
                return view.layout_direction == "rtl"
            view = view.parent
        return False

    def effective_background(self) -> Color:
        view: Optional[View] = self
        while view is not None:
            if view.background is not None and view.background[3] > 0:
                return view.background
            view = view.parent
        return self.context.theme.window_background

    def post_delayed(self, fn: Callable[[], None], delay_ms: int = 0) -> int:
        """Post ``fn`` on the session's handler queue."""
        if self.context is None:
            raise RuntimeError(f"{self!r} is not attached")
        return self.context.scheduler.post(fn, delay_ms)

    # -- attach -------------------------------------------------------------

    def dispatch_attached(self, context: RenderContext) -> None:
        self.context = context
        self.on_attached()
        for child in self.children:
            child.dispatch_attached(context)

    def dispatch_detached(self) -> None:
        for child in self.children:
            child.dispatch_detached()
        self.on_detached()
        self.context = None

    def on_attached(self) -> None:
        pass

    def on_detached(self) -> None:
        pass

    # -- measure / layout / draw -------------------------------------------

    def _resolve(self, size: int, avail: Optional[int], wrap: int) -> int:
        if size == MATCH_PARENT:
            return avail if avail is not None else wrap
        if size == WRAP_CONTENT:
            return wrap if avail is None else min(wrap, avail)
        return self.context.dp(size)

    def measure(self, avail_w: Optional[int], avail_h: Optional[int]) -> tuple[int, int]:
        pad = 2 * self.context.dp(self.padding)
        inner_w = None if avail_w is None else max(avail_w - pad, 0)
        inner_h = None if avail_h is None else max(avail_h - pad, 0)
        content_w, content_h = self.measure_content(inner_w, inner_h)
        self.measured = (
            self._resolve(self.width, avail_w, content_w + pad),
            self._resolve(self.height, avail_h, content_h + pad),
        )
        return self.measured

    def measure_content(self, avail_w: Optional[int], avail_h: Optional[int]) -> tuple[int, int]:
        return (0, 0)

    def layout(self, left: int, top: int) -> None:
        w, h = self.measured
        self.bounds = (left, top, left + w, top + h)
        self.on_layout()

    def on_layout(self) -> None:
        pass

    def content_bounds(self) -> tuple[int, int, int, int]:
        pad = self.context.dp(self.padding)
        left, top, right, bottom = self.bounds
        return (left + pad, top + pad, max(right - pad, left + pad), max(bottom - pad, top + pad))

    def draw(self, canvas: Canvas) -> None:
        if not self.visible:
            return
        if self.background is not None:
            canvas.fill_rect(self.bounds, self.background)
        self.on_draw(canvas)
        for child in self.children:
            child.draw(canvas)

    def on_draw(self, canvas: Canvas) -> None:
        pass


class ViewGroup(View):
    """View with ordered children."""

    def __init__(self, *children: View, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self._children: list[View] = []
        for child in children:
            self.add_view(child)

    @property
    def children(self) -> tuple[View, ...]:
        return tuple(self._children)

    def add_view(self, child: View, index: Optional[int] = None) -> None:
        if child.parent is not None:
            raise ValueError(f"{child!r} already has a parent; remove it first")
        child.parent = self
        if index is None:
            self._children.append(child)
        else:
            self._children.insert(index, child)
        if self.context is not None:
            child.dispatch_attached(self.context)

    def remove_view(self, child: View) -> None:
        if child not in self._children:
            return
        if child.context is not None:
            child.dispatch_detached()
        self._children.remove(child)
        child.parent = None

    def remove_all_views(self) -> None:
        for child in list(self._children):
            self.remove_view(child)


class FrameLayout(ViewGroup):
    """Stacks children at the start corner."""

    def measure_content(self, avail_w, avail_h):
        w = h = 0
        for child in self._children:
            cw, ch = child.measure(avail_w, avail_h)
            w, h = max(w, cw), max(h, ch)
        return (w, h)

    def on_layout(self) -> None:
        left, top, right, _ = self.content_bounds()
        rtl = self.is_rtl()
        for child in self._children:
            cw, _ = child.measured
            child.layout(right - cw if rtl else left, top)


class LinearLayout(ViewGroup):
    """Children in a row or column; rows are mirrored in RTL."""

    def __init__(self, *children: View, orientation: str = "vertical", spacing: int = 0, **kwargs: Any) -> None:
        if orientation not in ("vertical", "horizontal"):
            raise ValueError(f"orientation must be 'vertical' or 'horizontal', got {orientation!r}")
        self.orientation = orientation
        self.spacing = spacing
        super().__init__(*children, **kwargs)

    @property
    def _horizontal(self) -> bool:
        return self.orientation == "horizontal"

    def measure_content(self, avail_w, avail_h):
        gap = self.context.dp(self.spacing)
        main = cross = 0
        for i, child in enumerate(self._children):
            if i:
                main += gap
            if self._horizontal:
                remaining = None if avail_w is None else max(avail_w - main, 0)
                cw, ch = child.measure(remaining, avail_h)
                main, cross = main + cw, max(cross, ch)
            else:
                remaining = None if avail_h is None else max(avail_h - main, 0)
                cw, ch = child.measure(avail_w, remaining)
                main, cross = main + ch, max(cross, cw)
        return (main, cross) if self._horizontal else (cross, main)

    def on_layout(self) -> None:
        left, top, right, _ = self.content_bounds()
        gap = self.context.dp(self.spacing)
        rtl = self.is_rtl()
        if self._horizontal:
            x = left
            for child in (reversed(self._children) if rtl else self._children):
                child.layout(x, top)
                x += child.measured[0] + gap
        else:
            y = top
            for child in self._children:
                cw, ch = child.measured
                child.layout(right - cw if rtl else left, y)
                y += ch + gap


# ---------------------------------------------------------------------------
# Leaf widgets
# ---------------------------------------------------------------------------


class ColorBox(View):
    """Solid rectangle, 48dp square unless sized otherwise."""

    def __init__(self, color: ColorLike = "#808080", *, width: int = 48, height: int = 48, **kwargs: Any) -> None:
        super().__init__(width=width, height=height, background=color, **kwargs)

    def set_color(self, color: ColorLike) -> None:
        self.background = to_rgba(color)


class TextView(View):
    def __init__(
        self,
        text: str = "",
        *,
        text_size_sp: int = 14,
        text_color: Optional[ColorLike] = None,
        font: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.text = text
        self.text_size_sp = text_size_sp
        self.text_color = to_rgba(text_color) if text_color is not None else None
        self.font_name = font

    def set_text(self, text: str) -> None:
        self.text = text

    @property
    def display_text(self) -> str:
        return self.text

    def resolved_text_color(self) -> Color:
        return self.text_color if self.text_color is not None else self.context.theme.text_color

    def _font(self) -> Any:
        return self.context.font(self.font_name, self.context.dp(self.text_size_sp))

    def measure_content(self, avail_w, avail_h):
        if not self.display_text:
            return (0, 0)
        _, _, right, bottom = self._font().getbbox(self.display_text)
        return (int(right), int(bottom))

    def on_draw(self, canvas: Canvas) -> None:
        if not self.display_text:
            return
        left, top, _, _ = self.content_bounds()
        canvas.draw.text((left, top), self.display_text, font=self._font(), fill=self.resolved_text_color())


class Button(TextView):
    def __init__(
        self,
        text: str = "",
        *,
        clickable: bool = True,
        padding: int = 12,
        background: Optional[ColorLike] = "#D6D7D7",
        all_caps: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(text, clickable=clickable, padding=padding, background=background, **kwargs)
        self.all_caps = all_caps

    @property
    def display_text(self) -> str:
        return self.text.upper() if self.all_caps else self.text


class ImageView(View):
    """Draws an (H, W, 3|4) uint8 bitmap scaled to its bounds."""

    image_like = True

    def __init__(self, bitmap: Optional[np.ndarray] = None, *, width: int = 48, height: int = 48, **kwargs: Any) -> None:
        super().__init__(width=width, height=height, **kwargs)
        if bitmap is not None:
            bitmap = np.asarray(bitmap)
            if bitmap.dtype != np.uint8 or bitmap.ndim != 3 or bitmap.shape[2] not in (3, 4):
                raise ValueError(f"bitmap must be (H, W, 3|4) uint8, got {bitmap.shape} {bitmap.dtype}")
        self.bitmap = bitmap

    def measure_content(self, avail_w, avail_h):
        if self.bitmap is None:
            return (0, 0)
        return (self.bitmap.shape[1], self.bitmap.shape[0])

    def on_draw(self, canvas: Canvas) -> None:
        left, top, right, bottom = self.content_bounds()
        if right <= left or bottom <= top:
            return
        if self.bitmap is None:
            # placeholder cross
            color = self.context.theme.accent
            canvas.draw.line((left, top, right - 1, bottom - 1), fill=color, width=2)
            canvas.draw.line((left, bottom - 1, right - 1, top), fill=color, width=2)
            return
        bitmap = Image.fromarray(self.bitmap).convert("RGBA")
        bitmap = bitmap.resize((right - left, bottom - top), Image.NEAREST)
        canvas.image.alpha_composite(bitmap, dest=(left, top))


# ---------------------------------------------------------------------------
# Animation
# ---------------------------------------------------------------------------


class AnimationHandler:
    """Process-wide frame-callback driver shared by running animations.

    The cached instance is bound to one scheduler; backends reset it when a
    view is released so the next view starts from a clean handler.
    """

    _current: Optional["AnimationHandler"] = None

    def __init__(self, scheduler: Any) -> None:
        self.scheduler = scheduler
        self.animations: list[AnimatedBox] = []
        self._token: Optional[int] = None

    @classmethod
    def get(cls, scheduler: Any) -> "AnimationHandler":
        if cls._current is None or cls._current.scheduler is not scheduler:
            cls._current = cls(scheduler)
        return cls._current

    @classmethod
    def current(cls) -> Optional["AnimationHandler"]:
        return cls._current

    @classmethod
    def reset(cls) -> None:
        cls._current = None

    def add(self, animation: "AnimatedBox") -> None:
        if animation not in self.animations:
            self.animations.append(animation)
        self._schedule()

    def remove(self, animation: "AnimatedBox") -> None:
        if animation in self.animations:
            self.animations.remove(animation)

    def _schedule(self) -> None:
        if self._token is None and self.animations:
            self._token = self.scheduler.post_frame_callback(self._do_frame)

    def _do_frame(self, frame_nanos: int) -> None:
        self._token = None
        for animation in list(self.animations):
            if not animation.do_animation_frame(frame_nanos):
                self.animations.remove(animation)
        self._schedule()


class AnimatedBox(View):
    """Box that fades between two colors and slides over ``duration_ms``.

    The animation starts at the first frame after attach, so its progress
    depends only on frame times handed out by the virtual clock.
    """

    def __init__(
        self,
        *,
        duration_ms: int = 1000,
        start_color: ColorLike = "#2196F3",
        end_color: ColorLike = "#F44336",
        travel_dp: int = 0,
        repeat: bool = False,
        width: int = 48,
        height: int = 48,
        **kwargs: Any,
    ) -> None:
        if duration_ms <= 0:
            raise ValueError(f"duration_ms must be positive, got {duration_ms}")
        super().__init__(width=width, height=height, **kwargs)
        self.duration_ms = duration_ms
        self.start_color = to_rgba(start_color)
        self.end_color = to_rgba(end_color)
        self.travel_dp = travel_dp
        self.repeat = repeat
        self.fraction = 0.0
        self._start_nanos: Optional[int] = None

    def on_attached(self) -> None:
        self.fraction = 0.0
        self._start_nanos = None
        AnimationHandler.get(self.context.scheduler).add(self)

    def on_detached(self) -> None:
        handler = AnimationHandler.current()
        if handler is not None:
            handler.remove(self)

    def do_animation_frame(self, frame_nanos: int) -> bool:
        """Advance to ``frame_nanos``; return False once finished."""
        if self._start_nanos is None:
            self._start_nanos = frame_nanos
        elapsed_ms = (frame_nanos - self._start_nanos) / 1_000_000
        if self.repeat:
            self.fraction = (elapsed_ms % self.duration_ms) / self.duration_ms
            return True
        self.fraction = min(elapsed_ms / self.duration_ms, 1.0)
        return self.fraction < 1.0

    def current_color(self) -> Color:
        f = self.fraction
        return tuple(
            int(round(a + (b - a) * f)) for a, b in zip(self.start_color, self.end_color)
        )

    def on_draw(self, canvas: Canvas) -> None:
        left, top, right, bottom = self.bounds
        dx = int(round(self.context.dp(self.travel_dp) * self.fraction))
        if self.is_rtl():
            dx = -dx
        canvas.fill_rect((left + dx, top, right + dx, bottom), self.current_color())


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------


class ComposeHost(ViewGroup):
    """Hosts a composable: a callable building the content view.

    Composition happens on the handler queue after attach and requires a
    RESUMED lifecycle owner up the tree. Disposal is posted on detach and
    runs on the next drain.
    """

    def __init__(self, content: Callable[[], View], **kwargs: Any) -> None:
        kwargs.setdefault("width", MATCH_PARENT)
        kwargs.setdefault("height", MATCH_PARENT)
        super().__init__(**kwargs)
        self.content = content
        self.composed = False

    def on_attached(self) -> None:
        owner = self.find_tree_owner(LIFECYCLE_OWNER_KEY)
        if owner is None or not owner.state.is_at_least(LifecycleState.CREATED):
            self.context.log.error(
                "compose", "ViewTreeLifecycleOwner not found from %r", self
            )
            return
        self.post_delayed(self._compose)

    def _compose(self) -> None:
        if self.context is None:
            return
        self.remove_all_views()
        self.add_view(self.content())
        self.composed = True

    def on_detached(self) -> None:
        self.context.scheduler.post(self._dispose_composition)

    def _dispose_composition(self) -> None:
        self.remove_all_views()
        self.composed = False

    def measure_content(self, avail_w, avail_h):
        w = h = 0
        for child in self._children:
            cw, ch = child.measure(avail_w, avail_h)
            w, h = max(w, cw), max(h, ch)
        return (w, h)

    def on_layout(self) -> None:
        left, top, _, _ = self.content_bounds()
        for child in self._children:
            child.layout(left, top)


# ---------------------------------------------------------------------------
# Inflation
# ---------------------------------------------------------------------------

WIDGETS: dict[str, type[View]] = {
    "View": View,
    "FrameLayout": FrameLayout,
    "LinearLayout": LinearLayout,
    "ColorBox": ColorBox,
    "TextView": TextView,
    "Button": Button,
    "ImageView": ImageView,
    "AnimatedBox": AnimatedBox,
    "ComposeHost": ComposeHost,
}

ViewFactory = Callable[[str, RenderContext, dict], Optional[View]]


class LayoutInflater:
    """Creates views by type name, consulting an optional factory first."""

    def __init__(self, context: RenderContext) -> None:
        self.context = context
        self.factory: Optional[ViewFactory] = None

    def create(self, name: str, **attrs: Any) -> View:
        if self.factory is not None:
            view = self.factory(name, self.context, attrs)
            if view is not None:
                return view
        try:
            cls = WIDGETS[name]
        except KeyError:
            raise ValueError(f"Unknown view type '{name}', known: {sorted(WIDGETS)}") from None
        return cls(**attrs)


def app_compat_view_factory(name: str, context: RenderContext, attrs: dict) -> Optional[View]:
    """Themed replacements for framework widgets."""
    if name == "Button":
        attrs = dict(attrs)
        attrs.setdefault("background", context.theme.accent)
        attrs.setdefault("text_color", (255, 255, 255, 255))
        attrs.setdefault("all_caps", True)
        return Button(**attrs)
    if name == "TextView":
        attrs = dict(attrs)
        attrs.setdefault("text_color", context.theme.text_color)
        return TextView(**attrs)
    return None
