"""Helper utilities for safely interacting with the dashboard DOM."""

from __future__ import annotations

import asyncio
from typing import Any

from playwright.async_api import Error as PlaywrightError

CONTEXT_DESTROYED = "Execution context was destroyed"


def is_context_destroyed(exc: BaseException) -> bool:
    """Return True when *exc* signals that the SPA replaced the document mid-call."""

    return CONTEXT_DESTROYED.lower() in str(exc).lower()


async def settle(ms: int, *, multiplier: float = 1.0) -> None:
    """Pause for *ms* milliseconds (scaled) to let the page re-render."""

    delay = max(ms * multiplier, 0) / 1000
    if delay <= 0:
        await asyncio.sleep(0)
        return
    await asyncio.sleep(delay)


async def is_visible_safe(handle: Any) -> bool:
    if handle is None:
        return False
    try:
        return bool(await handle.is_visible())
    except PlaywrightError:
        return False


async def inner_text_safe(handle: Any) -> str | None:
    """Return the stripped inner text for *handle* while ignoring DOM failures."""

    if handle is None:
        return None
    try:
        result = await handle.inner_text()
    except PlaywrightError:
        return None
    if result is None:
        return None
    return result.strip()


async def class_name_safe(handle: Any) -> str:
    try:
        value = await handle.get_attribute("class")
    except PlaywrightError:
        return ""
    return value or ""


async def first_visible(root: Any, selector: str, *, last: bool = False) -> Any | None:
    """Return the first (or last) visible element matching *selector* under *root*."""

    try:
        handles = await root.query_selector_all(selector)
    except PlaywrightError as exc:
        if is_context_destroyed(exc):
            raise
        return None
    ordered = list(reversed(handles)) if last else list(handles)
    for handle in ordered:
        if await is_visible_safe(handle):
            return handle
    return None


async def page_title_safe(page: Any) -> str | None:
    try:
        return await page.title()
    except PlaywrightError:
        return None


__all__ = [
    "CONTEXT_DESTROYED",
    "class_name_safe",
    "first_visible",
    "inner_text_safe",
    "is_context_destroyed",
    "is_visible_safe",
    "page_title_safe",
    "settle",
]
