"""Shared fixtures for render_harness tests.

Every test gets a fresh process runtime (capability table, clock, session
slot) and a clean animation-handler cache.
"""

from __future__ import annotations

import pytest

from render_harness.backends.widgets import AnimationHandler
from render_harness.configs.environment import Environment
from render_harness.runtime.process import reset_runtime
from render_harness.session.manager import RenderSessionManager
from src.utils.validators import DeviceProfile, SessionConfig


@pytest.fixture(autouse=True)
def runtime():
    AnimationHandler.reset()
    yield reset_runtime()
    AnimationHandler.reset()


@pytest.fixture
def device() -> DeviceProfile:
    """200x300 px at 160 dpi, so 1 dp == 1 px."""
    return DeviceProfile(name="TEST_MDPI", width_px=200, height_px=300, density_dpi=160)


@pytest.fixture
def round_device() -> DeviceProfile:
    return DeviceProfile(
        name="TEST_ROUND", width_px=100, height_px=100, density_dpi=160,
        shape="round", status_bar_dp=0, navigation_bar_dp=0,
    )


@pytest.fixture
def environment() -> Environment:
    return Environment(package_name="app.test", resource_package_names=("app.test",))


@pytest.fixture
def config(device) -> SessionConfig:
    return SessionConfig(device=device)


@pytest.fixture
def session(config, environment, runtime):
    manager = RenderSessionManager(config, environment, runtime=runtime)
    manager.prepare()
    yield manager
    if manager.state.name == "PREPARED":
        manager.log.flush_errors()
        manager.dispose()
