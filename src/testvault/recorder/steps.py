"""Pull URLs, selectors and expectations out of Playwright step titles."""

from __future__ import annotations

import re
from dataclasses import dataclass

GOTO_PATTERN = re.compile(r"goto\s+(.+)")
SELECTOR_PATTERN = re.compile(r"locator\('([^']+)'\)|getByRole\('([^']+)'")
EXPECT_PATTERN = re.compile(r"expect\((.+?)\)\.(.+?)\((.+?)\)")

NAVIGATION_KEYWORDS = ("goto", "navigate")


@dataclass(frozen=True)
class StepDetails:
    """Fields inferred from a step title."""

    target_url: str | None = None
    selector: str | None = None
    expected_value: str | None = None


def describe_step(title: str, category: str | None = None) -> StepDetails:
    """Infer target URL, selector and expected value from a step title.

    >>> describe_step("page.goto https://example.com").target_url
    'https://example.com'
    """
    target_url = None
    if "goto" in title:
        match = GOTO_PATTERN.search(title)
        if match:
            target_url = match.group(1).strip()

    selector = None
    match = SELECTOR_PATTERN.search(title)
    if match:
        selector = match.group(1) or match.group(2)

    expected_value = None
    if category == "expect":
        match = EXPECT_PATTERN.search(title)
        if match:
            selector = match.group(1)
            expected_value = match.group(3)

    return StepDetails(target_url=target_url, selector=selector, expected_value=expected_value)


def is_navigation(title: str) -> bool:
    return any(keyword in title for keyword in NAVIGATION_KEYWORDS)
