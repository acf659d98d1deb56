"""Selector string -> Playwright locator."""

from typing import Any

TESTID_PREFIX = "testid="


def resolve_selector(page: Any, selector: str) -> Any:
    """Build a locator for a selector string.

    CSS, ``text=``, ``role=`` and ``xpath=`` selectors go straight to
    Playwright; ``testid=`` resolves through ``get_by_test_id``.
    """
    if selector.startswith(TESTID_PREFIX):
        return page.get_by_test_id(selector[len(TESTID_PREFIX):])
    return page.locator(selector)
