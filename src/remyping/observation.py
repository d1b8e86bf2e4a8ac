"""Browsing-session capability consumed by the navigator.

The navigator only ever reads text, waits for visibility, clicks, fills and
enumerates elements. Observation captures exactly that surface so the step
sequence runs the same against a live Playwright page (PageObservation) or a
scripted fake in tests.
"""

from typing import Protocol

from playwright.async_api import (
    ElementHandle as PlaywrightElementHandle,
    Page,
    TimeoutError as PlaywrightTimeoutError,
)


class ElementHandle(Protocol):
    async def text(self) -> str: ...

    async def is_disabled(self) -> bool: ...

    async def click(self) -> None: ...


class Observation(Protocol):
    async def current_text(self, selector: str) -> str | None: ...

    async def wait_for_visible(self, selector: str, timeout_ms: int) -> bool: ...

    async def click(self, selector: str) -> None: ...

    async def fill(self, selector: str, value: str) -> None: ...

    async def query_all(self, selector: str) -> list[ElementHandle]: ...


class PageElement:
    """ElementHandle backed by a Playwright element."""

    def __init__(self, handle: PlaywrightElementHandle) -> None:
        self.handle = handle

    async def text(self) -> str:
        return (await self.handle.text_content() or "").strip()

    async def is_disabled(self) -> bool:
        """Disabled attribute, aria-disabled, or a `disabled` CSS class."""
        if await self.handle.get_attribute("disabled") is not None:
            return True
        if (await self.handle.get_attribute("aria-disabled") or "").lower() == "true":
            return True
        classes = (await self.handle.get_attribute("class") or "").split()
        return "disabled" in classes

    async def click(self) -> None:
        await self.handle.click()


class PageObservation:
    """Observation over a live Playwright page."""

    def __init__(self, page: Page) -> None:
        self.page = page

    async def current_text(self, selector: str) -> str | None:
        element = await self.page.query_selector(selector)
        if element is None:
            return None
        return (await element.text_content() or "").strip()

    async def wait_for_visible(self, selector: str, timeout_ms: int) -> bool:
        try:
            await self.page.wait_for_selector(
                selector, state="visible", timeout=timeout_ms
            )
        except PlaywrightTimeoutError:
            return False
        return True

    async def click(self, selector: str) -> None:
        await self.page.click(selector)

    async def fill(self, selector: str, value: str) -> None:
        await self.page.fill(selector, value)

    async def query_all(self, selector: str) -> list[ElementHandle]:
        handles = await self.page.query_selector_all(selector)
        return [PageElement(handle) for handle in handles]
