"""Capability substitution: replace host behaviours before any session exists.

A render backend built for live devices reaches for host behaviours that are
either non-deterministic (wall-clock time, system fonts) or unavailable
off-device (native matrix maths, system services). Instead of patching the
backend, every such behaviour is resolved by name through a
:class:`HostCapabilities` table, and the harness substitutes its own
implementations through a :class:`CapabilityRegistry`.

Lifecycle::

    registry.register("time_source", clock.now, required=True)
    registry.register("font_lookup", lookup_font)          # optional
    registry.install_all(host)    # once per process; later calls are no-ops

Rules:
    - One rule per capability name; the rule set closes at installation.
    - Optional capability absent from the runtime: skipped, logged at DEBUG.
    - Required capability absent: :class:`IntegrationRequired`, nothing applied.
    - No teardown. ``clear()`` exists for tests only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from render_harness.errors import IntegrationMissing, IntegrationRequired

logger = logging.getLogger(__name__)

# Well-known capability names
TIME_SOURCE = "time_source"
FRAME_TIME = "frame_time"
EDIT_MODE = "edit_mode"
FONT_LOOKUP = "font_lookup"
MATRIX_MULTIPLY_MM = "matrix_multiply_mm"
MATRIX_MULTIPLY_MV = "matrix_multiply_mv"
SERVICE_LOOKUP = "service_lookup"
INPUT_METHOD_MANAGER = "input_method_manager"
APP_COMPAT_VIEW_FACTORY = "app_compat_view_factory"


# ---------------------------------------------------------------------------
# Resolution table
# ---------------------------------------------------------------------------


class HostCapabilities:
    """Named behaviours a render backend resolves at call time.

    Backends ``declare`` the slots they consult together with their live
    (device) default. Substitution swaps the active behaviour; the default
    is kept so tests can inspect what was replaced.
    """

    def __init__(self) -> None:
        self._defaults: dict[str, Callable[..., Any]] = {}
        self._active: dict[str, Callable[..., Any]] = {}

    def declare(self, name: str, default: Callable[..., Any]) -> None:
        """Declare a slot. Re-declaring keeps any active substitute."""
        self._defaults.setdefault(name, default)
        self._active.setdefault(name, default)

    def provides(self, name: str) -> bool:
        return name in self._active

    def __contains__(self, name: object) -> bool:
        return name in self._active

    def resolve(self, name: str) -> Callable[..., Any]:
        """Return the active behaviour for ``name``.

        Raises
        ------
        KeyError
            If the runtime never declared ``name``.
        """
        try:
            return self._active[name]
        except KeyError:
            raise KeyError(f"Capability '{name}' is not declared by the runtime") from None

    def substitute(self, name: str, behaviour: Callable[..., Any]) -> None:
        if name not in self._active:
            raise KeyError(f"Capability '{name}' is not declared by the runtime")
        self._active[name] = behaviour

    def is_substituted(self, name: str) -> bool:
        return name in self._active and self._active[name] is not self._defaults[name]

    def names(self) -> list[str]:
        return sorted(self._active)


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CapabilityRule:
    """Replacement behaviour for one named capability."""

    name: str
    replacement: Callable[..., Any]
    required: bool = False


class CapabilityRegistry:
    """Collects capability rules and installs them exactly once."""

    def __init__(self) -> None:
        self._rules: dict[str, CapabilityRule] = {}
        self._installed = False
        self._missing: list[IntegrationMissing] = []

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def rules(self) -> list[CapabilityRule]:
        return list(self._rules.values())

    @property
    def missing(self) -> list[IntegrationMissing]:
        """Optional rules skipped during installation."""
        return list(self._missing)

    def register(
        self,
        name: str,
        replacement: Callable[..., Any],
        *,
        required: bool = False,
    ) -> None:
        """Add a rule for ``name``.

        Raises
        ------
        ValueError
            If ``name`` already has a rule.
        RuntimeError
            If the registry was already installed.
        """
        if self._installed:
            raise RuntimeError(
                f"Cannot register '{name}': capability rules are already installed"
            )
        if name in self._rules:
            raise ValueError(f"Capability '{name}' is already registered")
        self._rules[name] = CapabilityRule(name, replacement, required)

    def install_all(self, host: HostCapabilities) -> list[IntegrationMissing]:
        """Apply every rule to ``host``; no-op after the first success.

        Returns
        -------
        list[IntegrationMissing]
            Optional rules that were skipped.

        Raises
        ------
        IntegrationRequired
            If a required capability is not declared by ``host``. No rule
            is applied in that case.
        """
        if self._installed:
            return self.missing

        for rule in self._rules.values():
            if rule.required and not host.provides(rule.name):
                raise IntegrationRequired(rule.name)

        for rule in self._rules.values():
            if not host.provides(rule.name):
                self._missing.append(IntegrationMissing(rule.name))
                logger.debug("Capability %s not found in runtime, skipping", rule.name)
                continue
            host.substitute(rule.name, rule.replacement)
            logger.debug("Installed capability substitute: %s", rule.name)

        self._installed = True
        logger.info(
            "Capability substitutes installed (%d applied, %d skipped)",
            len(self._rules) - len(self._missing),
            len(self._missing),
        )
        return self.missing

    def clear(self) -> None:
        """Drop all rules and the installed flag. Test-only."""
        self._rules.clear()
        self._missing.clear()
        self._installed = False
