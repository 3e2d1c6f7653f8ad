"""Ordered locator fallback for UI controls whose markup varies between releases."""

import logging
from dataclasses import dataclass
from typing import Optional, Pattern, Sequence, Union

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from errors import UiElementNotFoundError

logger = logging.getLogger('confluence_pdf_exporter.exporters.selectors')

TextMatch = Union[str, Pattern[str]]


@dataclass(frozen=True)
class LocatorStrategy:
    """One way of finding a control: by label, role, test id, CSS or text."""

    kind: str
    value: str
    name: Optional[TextMatch] = None
    has_text: Optional[TextMatch] = None

    def locate(self, page):
        if self.kind == 'label':
            locator = page.get_by_label(self.value)
        elif self.kind == 'role':
            locator = page.get_by_role(self.value, name=self.name)
        elif self.kind == 'test_id':
            locator = page.get_by_test_id(self.value)
        elif self.kind == 'css':
            locator = page.locator(self.value)
        elif self.kind == 'text':
            locator = page.get_by_text(self.name if self.name is not None else self.value)
        else:
            raise ValueError(f"Unknown locator kind: {self.kind}")

        if self.has_text is not None:
            locator = locator.filter(has_text=self.has_text)
        return locator

    def describe(self) -> str:
        detail = self.value
        if self.name is not None:
            detail += f" name={getattr(self.name, 'pattern', self.name)!r}"
        if self.has_text is not None:
            detail += f" text={getattr(self.has_text, 'pattern', self.has_text)!r}"
        return f"{self.kind}:{detail}"


def by_label(label: str) -> LocatorStrategy:
    return LocatorStrategy('label', label)


def by_role(role: str, name: TextMatch) -> LocatorStrategy:
    return LocatorStrategy('role', role, name=name)


def by_test_id(test_id: str) -> LocatorStrategy:
    return LocatorStrategy('test_id', test_id)


def by_css(selector: str, has_text: Optional[TextMatch] = None) -> LocatorStrategy:
    return LocatorStrategy('css', selector, has_text=has_text)


def by_text(text: TextMatch) -> LocatorStrategy:
    return LocatorStrategy('text', getattr(text, 'pattern', text), name=text)


class SelectorChain:
    """Equivalent strategies for one UI step, tried in order."""

    def __init__(self, step: str, strategies: Sequence[LocatorStrategy]):
        self.step = step
        self.strategies = list(strategies)

    def resolve(self, page, timeout: int):
        """
        Return the first strategy's locator that becomes visible.

        Args:
            page: Playwright Page
            timeout: Milliseconds to wait for each strategy

        Returns:
            Visible Playwright Locator

        Raises:
            UiElementNotFoundError: If no strategy resolves
        """
        tried = []
        for strategy in self.strategies:
            tried.append(strategy.describe())
            try:
                locator = strategy.locate(page).first
                locator.wait_for(state='visible', timeout=timeout)
            except PlaywrightTimeoutError:
                logger.debug(f"[{self.step}] {strategy.describe()} not visible within {timeout}ms")
                continue
            except PlaywrightError as e:
                logger.debug(f"[{self.step}] {strategy.describe()} failed: {e}")
                continue

            logger.debug(f"[{self.step}] resolved via {strategy.describe()}")
            return locator

        raise UiElementNotFoundError(self.step, tried)

    def any_of(self, page):
        """Single locator matching whichever strategy's element appears first."""
        combined = None
        for strategy in self.strategies:
            locator = strategy.locate(page)
            combined = locator if combined is None else combined.or_(locator)
        return combined.first


__all__ = [
    'LocatorStrategy',
    'SelectorChain',
    'by_css',
    'by_label',
    'by_role',
    'by_test_id',
    'by_text'
]
