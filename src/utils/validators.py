"""YAML schema validation and config models.

Provides centralized validation for all configuration using pydantic:
    - Device schema (devices.v1.yaml): screen size, density, shape, chrome
    - Harness schema (harness.v1.yaml): default session configuration
    - SessionConfig: the immutable per-session render configuration

All modules must use these validators to load configs for fail-fast error
detection with actionable messages (offending keys, expected ranges).

Units:
    - Geometry: pixels (px) unless a field says dp
    - Density: dots per inch (dpi); 160 dpi == 1 px per dp
    - Percentages: [0, 100]

Usage:
    from src.utils import validators

    devices = validators.load_devices_file("render_harness/configs/devices.v1.yaml")
    harness_cfg = validators.load_harness_config("harness.yaml")
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ============================================================================
# ENUMS
# ============================================================================

class ScreenShape(str, Enum):
    """Physical screen outline of a device."""
    RECTANGULAR = "rectangular"
    ROUND = "round"


class SizeAction(str, Enum):
    """How one axis of the root container is sized.

    KEEP: exactly the device dimension
    EXPAND: grow to fit content, never below the device dimension
    SHRINK: wrap content
    """
    KEEP = "keep"
    EXPAND = "expand"
    SHRINK = "shrink"


class RenderingMode(Enum):
    """Independent horizontal/vertical sizing policy for a render session."""
    NORMAL = (SizeAction.KEEP, SizeAction.KEEP)
    V_SCROLL = (SizeAction.KEEP, SizeAction.EXPAND)
    H_SCROLL = (SizeAction.EXPAND, SizeAction.KEEP)
    FULL_EXPAND = (SizeAction.EXPAND, SizeAction.EXPAND)
    SHRINK = (SizeAction.SHRINK, SizeAction.SHRINK)

    @property
    def horizontal(self) -> SizeAction:
        return self.value[0]

    @property
    def vertical(self) -> SizeAction:
        return self.value[1]


def _coerce_rendering_mode(v: Any) -> Any:
    if isinstance(v, str):
        try:
            return RenderingMode[v.upper()]
        except KeyError:
            valid = ", ".join(m.name for m in RenderingMode)
            raise ValueError(f"Unknown rendering mode '{v}', expected one of: {valid}")
    return v


# ============================================================================
# DEVICE SCHEMA V1
# ============================================================================

class DeviceProfile(BaseModel):
    """Screen description of a rendering target."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Profile identifier, e.g. NEXUS_5")
    width_px: int = Field(..., gt=0, le=8192, description="Screen width (px)")
    height_px: int = Field(..., gt=0, le=8192, description="Screen height (px)")
    density_dpi: int = Field(480, ge=120, le=640, description="Screen density (dpi)")
    shape: ScreenShape = Field(ScreenShape.RECTANGULAR, description="Screen outline")
    status_bar_dp: int = Field(24, ge=0, description="System status bar height (dp)")
    navigation_bar_dp: int = Field(48, ge=0, description="System navigation bar height (dp)")

    @property
    def density_scale(self) -> float:
        """Pixels per dp."""
        return self.density_dpi / 160.0

    def dp_to_px(self, dp: float) -> int:
        return int(round(dp * self.density_scale))

    @property
    def status_bar_px(self) -> int:
        return self.dp_to_px(self.status_bar_dp)

    @property
    def navigation_bar_px(self) -> int:
        return self.dp_to_px(self.navigation_bar_dp)

    @property
    def is_round(self) -> bool:
        return self.shape == ScreenShape.ROUND


class DevicesFileV1(BaseModel):
    """Container for device profiles (YAML file format)."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field("devices.v1", alias="schema", description="Schema version")
    devices: List[DeviceProfile] = Field(..., min_length=1, description="Device profiles")

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "devices.v1":
            raise ValueError(f"Expected schema 'devices.v1', got '{v}'")
        return v

    @model_validator(mode='after')
    def validate_unique_names(self) -> 'DevicesFileV1':
        seen = set()
        for device in self.devices:
            if device.name in seen:
                raise ValueError(f"Duplicate device profile name: {device.name}")
            seen.add(device.name)
        return self

    def by_name(self) -> Dict[str, DeviceProfile]:
        return {device.name: device for device in self.devices}


# ============================================================================
# SESSION CONFIG
# ============================================================================

class SessionConfig(BaseModel):
    """Immutable render-session configuration.

    A new configuration triggers a session rebuild; a live session is never
    mutated in place. ``extensions`` holds objects exposing
    ``render_view(view) -> view``, applied in order.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    device: DeviceProfile
    theme: str = Field("android:Theme.Material.NoActionBar.Fullscreen", min_length=1)
    rendering_mode: RenderingMode = RenderingMode.NORMAL
    app_compat_enabled: bool = True
    extensions: Tuple[Any, ...] = ()
    supports_rtl: bool = False
    show_system_ui: bool = False
    validate_accessibility: bool = False
    max_percent_difference: float = Field(0.1, ge=0.0, le=100.0)

    @field_validator('rendering_mode', mode='before')
    @classmethod
    def validate_rendering_mode(cls, v: Any) -> Any:
        return _coerce_rendering_mode(v)

    @field_validator('extensions', mode='before')
    @classmethod
    def validate_extensions(cls, v: Any) -> Any:
        if v is None:
            return ()
        v = tuple(v)
        for ext in v:
            if not callable(getattr(ext, 'render_view', None)):
                raise ValueError(
                    f"Render extension {ext!r} must define render_view(view)"
                )
        return v

    def merged(
        self,
        device: Optional[DeviceProfile] = None,
        theme: Optional[str] = None,
        rendering_mode: Optional[RenderingMode] = None
    ) -> 'SessionConfig':
        """Return a validated copy with the non-None fields replaced.

        Raises
        ------
        ValidationError
            If a replaced field fails validation; ``self`` is unchanged.
        """
        data = {name: getattr(self, name) for name in type(self).model_fields}
        if device is not None:
            data['device'] = device
        if theme is not None:
            data['theme'] = theme
        if rendering_mode is not None:
            data['rendering_mode'] = rendering_mode
        return type(self).model_validate(data)


# ============================================================================
# HARNESS SCHEMA V1
# ============================================================================

class HarnessLogging(BaseModel):
    """Logging section of harness.v1.yaml."""
    level: str = Field("INFO", description="Root log level")
    file: Optional[str] = Field(None, description="Optional log file path")
    json_format: bool = Field(False, alias="json", description="JSON lines for the file handler")
    max_bytes: Optional[int] = Field(None, gt=0, description="Rotate the log file at this size")
    backup_count: int = Field(3, gt=0, description="Rotated log files to keep")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        v = v.upper()
        if v not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Invalid log level: {v}")
        return v


class HarnessV1(BaseModel):
    """Default session configuration for a test module (harness.v1.yaml)."""
    model_config = ConfigDict(populate_by_name=True)

    schema_version: str = Field("harness.v1", alias="schema", description="Schema version")
    device: str = Field("NEXUS_5", description="Device profile name")
    theme: str = Field("android:Theme.Material.NoActionBar.Fullscreen", min_length=1)
    rendering_mode: RenderingMode = RenderingMode.NORMAL
    app_compat_enabled: bool = True
    supports_rtl: bool = False
    show_system_ui: bool = False
    validate_accessibility: bool = False
    max_percent_difference: float = Field(0.1, ge=0.0, le=100.0)
    logging: HarnessLogging = Field(default_factory=HarnessLogging)

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "harness.v1":
            raise ValueError(f"Expected schema 'harness.v1', got '{v}'")
        return v

    @field_validator('rendering_mode', mode='before')
    @classmethod
    def validate_rendering_mode(cls, v: Any) -> Any:
        return _coerce_rendering_mode(v)

    def to_session_config(self, devices: Dict[str, DeviceProfile]) -> SessionConfig:
        """Resolve the device name and build a SessionConfig."""
        if self.device not in devices:
            raise ValueError(
                f"Unknown device profile '{self.device}', known: {sorted(devices)}"
            )
        return SessionConfig(
            device=devices[self.device],
            theme=self.theme,
            rendering_mode=self.rendering_mode,
            app_compat_enabled=self.app_compat_enabled,
            supports_rtl=self.supports_rtl,
            show_system_ui=self.show_system_ui,
            validate_accessibility=self.validate_accessibility,
            max_percent_difference=self.max_percent_difference,
        )


# ============================================================================
# PUBLIC API
# ============================================================================

def load_devices_file(path: Union[str, Path]) -> DevicesFileV1:
    """Load and validate device profiles from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to devices.v1.yaml file

    Returns
    -------
    DevicesFileV1
        Validated device profiles

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Device profiles not found: {path}")

    data = fs.load_yaml(path)
    try:
        return DevicesFileV1(**data)
    except Exception as e:
        raise ValueError(f"Device profiles validation failed at {path}: {e}") from e


def load_harness_config(path: Union[str, Path]) -> HarnessV1:
    """Load and validate harness defaults from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to harness.v1.yaml file

    Returns
    -------
    HarnessV1
        Validated harness configuration

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ValueError
        If validation fails (with actionable error message)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Harness config not found: {path}")

    data = fs.load_yaml(path) or {}
    try:
        return HarnessV1(**data)
    except Exception as e:
        raise ValueError(f"Harness config validation failed at {path}: {e}") from e
