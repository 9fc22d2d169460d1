"""Session parameters and the synthetic root document.

A render session is built from immutable :class:`SessionParams`. The
:class:`SessionParamsBuilder` accumulates them the way the session manager
needs: the environment once per process, then device/theme/mode per session.

The root document is a single-node container the backend inflates as the
session's root view. Its sizing follows the rendering mode::

    <FrameLayout xmlns:android="http://schemas.android.com/apk/res/android"
                 android:layout_width="match_parent"
                 android:layout_height="wrap_content"/>
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from xml.sax.saxutils import quoteattr

from render_harness.configs.environment import Environment
from render_harness.errors import ConfigError
from src.utils.validators import DeviceProfile, RenderingMode, SizeAction

ANDROID_NS = "http://schemas.android.com/apk/res/android"
COMPOSITION_ROOT_TAG = "ComposeViewAdapter"
PLAIN_ROOT_TAG = "FrameLayout"
DEFAULT_TIMEOUT_MS = 30_000

FRAMEWORK_THEME_PREFIX = "android:"


def _layout_size(action: SizeAction) -> str:
    return "wrap_content" if action == SizeAction.SHRINK else "match_parent"


def build_root_document(rendering_mode: RenderingMode, composition_root: bool) -> str:
    """Return the root container markup for ``rendering_mode``."""
    tag = COMPOSITION_ROOT_TAG if composition_root else PLAIN_ROOT_TAG
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        f"<{tag}\n"
        f"    xmlns:android={quoteattr(ANDROID_NS)}\n"
        f'    android:layout_width="{_layout_size(rendering_mode.horizontal)}"\n'
        f'    android:layout_height="{_layout_size(rendering_mode.vertical)}"/>\n'
    )


# ---------------------------------------------------------------------------
# Params
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SessionParams:
    """Everything a backend needs to construct one render session."""

    root_document: str
    device: DeviceProfile
    theme: str
    rendering_mode: RenderingMode
    supports_rtl: bool = False
    decor: bool = False
    sdk_version: int = 34
    package_name: str = "app.render.harness"
    resource_package_names: tuple[str, ...] = ()
    resources_dir: Path | None = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    @property
    def is_framework_theme(self) -> bool:
        return self.theme.startswith(FRAMEWORK_THEME_PREFIX)

    @property
    def theme_name(self) -> str:
        """Theme id without the framework prefix."""
        if self.is_framework_theme:
            return self.theme[len(FRAMEWORK_THEME_PREFIX):]
        return self.theme


@dataclass(frozen=True)
class SessionParamsBuilder:
    """Immutable builder; every change returns a new builder."""

    root_document: str | None = None
    device: DeviceProfile | None = None
    theme: str | None = None
    rendering_mode: RenderingMode = RenderingMode.NORMAL
    supports_rtl: bool = False
    decor: bool = False
    sdk_version: int = 34
    package_name: str = "app.render.harness"
    resource_package_names: tuple[str, ...] = field(default_factory=tuple)
    resources_dir: Path | None = None
    timeout_ms: int = DEFAULT_TIMEOUT_MS

    @classmethod
    def from_environment(cls, environment: Environment) -> SessionParamsBuilder:
        return cls(
            sdk_version=environment.compile_sdk_version,
            package_name=environment.package_name,
            resource_package_names=tuple(environment.resource_package_names),
            resources_dir=environment.resources_dir,
        )

    def copy(self, **changes) -> SessionParamsBuilder:
        return replace(self, **changes)

    def with_theme(self, theme: str) -> SessionParamsBuilder:
        if not theme:
            raise ConfigError("Theme id must be non-empty")
        return replace(self, theme=theme)

    def build(self) -> SessionParams:
        missing = [
            name for name in ("root_document", "device", "theme")
            if getattr(self, name) is None
        ]
        if missing:
            raise ConfigError(f"Session params incomplete, missing: {', '.join(missing)}")
        return SessionParams(
            root_document=self.root_document,
            device=self.device,
            theme=self.theme,
            rendering_mode=self.rendering_mode,
            supports_rtl=self.supports_rtl,
            decor=self.decor,
            sdk_version=self.sdk_version,
            package_name=self.package_name,
            resource_package_names=self.resource_package_names,
            resources_dir=self.resources_dir,
            timeout_ms=self.timeout_ms,
        )
