"""Accessibility checks over a laid-out view tree.

Checks run after a render pass, when every view has bounds:

    - TouchTargetSize: clickable views smaller than 48dp on either axis
    - SpeakableText: image-like views without a content description
    - TextContrast: text below a 4.5:1 contrast ratio against its background

Issues never fail a capture; they are logged as session warnings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

NO_ID = "no-id"

MIN_TOUCH_TARGET_DP = 48
MIN_TEXT_CONTRAST = 4.5

TOUCH_TARGET_URL = "https://support.google.com/accessibility/android/answer/7101858"
SPEAKABLE_TEXT_URL = "https://support.google.com/accessibility/android/answer/7158690"
TEXT_CONTRAST_URL = "https://support.google.com/accessibility/android/answer/7158390"

ISSUE_FORMAT = "Accessibility issue of type %s on %s: %s \nSee: %s"


@dataclass(frozen=True)
class AccessibilityIssue:
    category: str
    view_id: Optional[str]
    message: str
    help_url: str

    def format(self) -> str:
        return ISSUE_FORMAT % (self.category, self.view_id or NO_ID, self.message, self.help_url)


# ---------------------------------------------------------------------------
# Contrast (WCAG 2.x)
# ---------------------------------------------------------------------------


def _channel(c: int) -> float:
    v = c / 255.0
    return v / 12.92 if v <= 0.03928 else ((v + 0.055) / 1.055) ** 2.4


def relative_luminance(rgb: Sequence[int]) -> float:
    r, g, b = rgb[:3]
    return 0.2126 * _channel(r) + 0.7152 * _channel(g) + 0.0722 * _channel(b)


def contrast_ratio(fg: Sequence[int], bg: Sequence[int]) -> float:
    l1, l2 = sorted((relative_luminance(fg), relative_luminance(bg)), reverse=True)
    return (l1 + 0.05) / (l2 + 0.05)


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------


class AccessibilityValidator:
    """Run the checks over every visible view of a tree."""

    def __init__(
        self,
        min_touch_target_dp: int = MIN_TOUCH_TARGET_DP,
        min_text_contrast: float = MIN_TEXT_CONTRAST,
    ) -> None:
        self.min_touch_target_dp = min_touch_target_dp
        self.min_text_contrast = min_text_contrast

    def validate(self, root: Any, density_scale: float) -> list[AccessibilityIssue]:
        issues: list[AccessibilityIssue] = []
        min_px = int(round(self.min_touch_target_dp * density_scale))
        for view in root.iter_tree():
            if not view.visible:
                continue
            issues.extend(self._check_view(view, min_px))
        return issues

    def _check_view(self, view: Any, min_px: int) -> Iterable[AccessibilityIssue]:
        left, top, right, bottom = view.bounds
        if view.clickable and (right - left < min_px or bottom - top < min_px):
            yield AccessibilityIssue(
                "TouchTargetSize",
                view.view_id,
                f"Touch target is {right - left}x{bottom - top}px, "
                f"expected at least {min_px}x{min_px}px",
                TOUCH_TARGET_URL,
            )

        if getattr(view, "image_like", False) and not view.content_description:
            yield AccessibilityIssue(
                "SpeakableText",
                view.view_id,
                "Image has no content description for screen readers",
                SPEAKABLE_TEXT_URL,
            )

        text = getattr(view, "text", None)
        if text:
            ratio = contrast_ratio(view.resolved_text_color(), view.effective_background())
            if ratio < self.min_text_contrast:
                yield AccessibilityIssue(
                    "TextContrast",
                    view.view_id,
                    f"Text contrast ratio is {ratio:.2f}, "
                    f"expected at least {self.min_text_contrast:.1f}",
                    TEXT_CONTRAST_URL,
                )


def log_issues(issues: Iterable[AccessibilityIssue], log: Any) -> None:
    """Report each issue as a session warning."""
    for issue in issues:
        log.warning(
            ISSUE_FORMAT,
            issue.category,
            issue.view_id or NO_ID,
            issue.message,
            issue.help_url,
            tag="accessibility",
        )
