"""Contract between the session manager and a render backend.

The core never renders anything itself. It drives an object implementing
:class:`RenderBackend`: construct with session params, ``init``, ``inflate``
the root document, then ``render`` as often as needed and read ``image``.

A backend is built with ``first_frame_executed=True`` by the session
manager: the first render pass must not run one-time startup animations,
otherwise frame 0 would differ from every later capture at time 0.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Protocol

import numpy as np

from render_harness.runtime.capabilities import HostCapabilities
from render_harness.runtime.clock import CallbackScheduler
from render_harness.session.diagnostics import SessionLog
from render_harness.session.params import SessionParams


class RenderStatus(Enum):
    SUCCESS = auto()
    ERROR_TIMEOUT = auto()
    ERROR_INFLATION = auto()
    ERROR_NOT_INFLATED = auto()
    ERROR_UNKNOWN = auto()


@dataclass(frozen=True)
class RenderResult:
    """Outcome of one backend call."""

    status: RenderStatus
    message: str = ""
    exception: BaseException | None = None

    @property
    def is_success(self) -> bool:
        return self.status == RenderStatus.SUCCESS

    @classmethod
    def success(cls) -> RenderResult:
        return cls(RenderStatus.SUCCESS)


class RenderExtension(Protocol):
    """Hook that wraps or mutates a view before it is attached."""

    def render_view(self, view: Any) -> Any:
        ...


class RenderBackend(ABC):
    """One live session of the underlying render engine."""

    def __init__(
        self,
        params: SessionParams,
        host: HostCapabilities,
        log: SessionLog,
        *,
        first_frame_executed: bool = True,
    ) -> None:
        self.params = params
        self.host = host
        self.log = log
        self.first_frame_executed = first_frame_executed

    # -- capability slots ---------------------------------------------------

    @classmethod
    def declare_capabilities(cls, host: HostCapabilities) -> None:
        """Declare every host behaviour this backend resolves by name."""

    # -- runtime features ---------------------------------------------------

    supports_lifecycle_owner: bool = False
    has_composition_runtime: bool = False

    # -- lifecycle ----------------------------------------------------------

    @abstractmethod
    def init(self, timeout_ms: int) -> RenderResult:
        ...

    @abstractmethod
    def inflate(self) -> RenderResult:
        """Inflate the root document and run the first layout pass."""

    @abstractmethod
    def render(self, force_measure: bool = True) -> RenderResult:
        ...

    @abstractmethod
    def release(self) -> None:
        ...

    @abstractmethod
    def dispose(self) -> None:
        ...

    # -- state --------------------------------------------------------------

    @property
    @abstractmethod
    def image(self) -> np.ndarray:
        """Raster of the last render pass, (H, W, 4) uint8 RGBA."""

    @property
    @abstractmethod
    def root_container(self) -> Any:
        ...

    @property
    @abstractmethod
    def scheduler(self) -> CallbackScheduler:
        ...

    @property
    @abstractmethod
    def context(self) -> Any:
        ...

    @abstractmethod
    def inflate_view(self, name: str, **attrs: Any) -> Any:
        """Create a view by type name through the session's inflater."""

    def install_view_factory(self, factory: Callable[..., Any]) -> None:
        """Install an inflater factory; backends without one ignore it."""

    def set_default_density(self, density_dpi: int) -> None:
        """Density used when decoding bitmaps; backends may ignore it."""

    def reset_animation_cache(self) -> None:
        """Drop any static animation-handler state held between views."""


BackendFactory = Callable[..., RenderBackend]
