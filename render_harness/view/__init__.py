"""Attaching content views to a render session."""

from render_harness.view.accessibility import (
    AccessibilityIssue,
    AccessibilityValidator,
    NO_ID,
)
from render_harness.view.lifecycle import (
    HarnessLifecycleOwner,
    LifecycleState,
    install_view_tree_owners,
)
from render_harness.view.prepared_view import CONTENT_ROOT_ID, PreparedView

__all__ = [
    "AccessibilityIssue",
    "AccessibilityValidator",
    "CONTENT_ROOT_ID",
    "HarnessLifecycleOwner",
    "LifecycleState",
    "NO_ID",
    "PreparedView",
    "install_view_tree_owners",
]
