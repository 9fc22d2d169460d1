"""Theme table for the raster backend.

Themes are resolved by id with or without the ``android:`` prefix. Unknown
ids fall back to the longest known prefix, then to the default dark theme.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Union

from PIL import ImageColor

Color = tuple[int, int, int, int]
ColorLike = Union[str, Sequence[int]]


def to_rgba(color: ColorLike) -> Color:
    """Normalise ``"#RRGGBB"``, ``"#RRGGBBAA"``, names or tuples to RGBA."""
    if isinstance(color, str):
        return tuple(ImageColor.getcolor(color, "RGBA"))
    values = tuple(int(c) for c in color)
    if len(values) == 3:
        return values + (255,)
    if len(values) != 4:
        raise ValueError(f"Expected an RGB or RGBA color, got {color!r}")
    return values


@dataclass(frozen=True)
class Theme:
    name: str
    window_background: Color
    text_color: Color
    accent: Color
    status_bar: Color
    navigation_bar: Color
    fullscreen: bool = False


_MATERIAL_DARK = Theme(
    name="Theme.Material",
    window_background=(48, 48, 48, 255),
    text_color=(255, 255, 255, 255),
    accent=(0, 150, 136, 255),
    status_bar=(0, 0, 0, 255),
    navigation_bar=(0, 0, 0, 255),
)

_MATERIAL_LIGHT = Theme(
    name="Theme.Material.Light",
    window_background=(250, 250, 250, 255),
    text_color=(33, 33, 33, 255),
    accent=(0, 150, 136, 255),
    status_bar=(117, 117, 117, 255),
    navigation_bar=(0, 0, 0, 255),
)

THEMES: dict[str, Theme] = {
    "Theme.Material": _MATERIAL_DARK,
    "Theme.Material.NoActionBar": _MATERIAL_DARK,
    "Theme.Material.NoActionBar.Fullscreen": Theme(
        **{**_MATERIAL_DARK.__dict__, "name": "Theme.Material.NoActionBar.Fullscreen", "fullscreen": True}
    ),
    "Theme.Material.Light": _MATERIAL_LIGHT,
    "Theme.Material.Light.NoActionBar": _MATERIAL_LIGHT,
    "Theme.Material.Light.NoActionBar.Fullscreen": Theme(
        **{**_MATERIAL_LIGHT.__dict__, "name": "Theme.Material.Light.NoActionBar.Fullscreen", "fullscreen": True}
    ),
}

DEFAULT_THEME = _MATERIAL_DARK


def resolve_theme(theme_id: str) -> tuple[Theme, bool]:
    """Return ``(theme, exact)`` for ``theme_id``."""
    name = theme_id.split(":", 1)[1] if theme_id.startswith("android:") else theme_id
    if name in THEMES:
        return THEMES[name], True

    candidates = [known for known in THEMES if name.startswith(known + ".")]
    if candidates:
        return THEMES[max(candidates, key=len)], False
    return DEFAULT_THEME, False
