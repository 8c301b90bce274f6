import logging
from abc import ABC, abstractmethod

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Locator, sync_playwright
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from stepflow import config
from stepflow.locator.engines import playwright_selector
from stepflow.models.dsl import Selector
from stepflow.models.errors import NavigationError

LOGGER = logging.getLogger(__name__)


class BrowserSession(ABC):
    """One live browser page owned by exactly one run."""

    @abstractmethod
    def navigate(self, url: str) -> None:
        pass

    @abstractmethod
    def count(self, selector: Selector) -> int:
        """
        Number of elements matching ``selector``, waiting up to the step
        timeout for the first one to appear. Zero means it never did.
        """
        pass

    @abstractmethod
    def click(self, selector: Selector) -> None:
        pass

    @abstractmethod
    def type_text(self, selector: Selector, text: str) -> None:
        pass

    @abstractmethod
    def read_text(self, selector: Selector) -> str:
        pass

    @abstractmethod
    def screenshot(self, path: str) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass


class PlaywrightSession(BrowserSession):
    def __init__(self, browser_name: str = None, headless: bool = None, timeout_ms: int = None):
        browser_name = browser_name or config.BROWSER
        headless = config.HEADLESS if headless is None else headless
        timeout_ms = timeout_ms or config.STEP_TIMEOUT_MS

        self._playwright = sync_playwright().start()
        try:
            browser_type = getattr(self._playwright, browser_name)
            LOGGER.info("Launching %s (headless=%s)", browser_name, headless)
            self._browser = browser_type.launch(headless=headless)
            context = self._browser.new_context()
            self.page = context.new_page()
            self.page.set_default_timeout(timeout_ms)
        except Exception:
            self._playwright.stop()
            raise

    def _locator(self, selector: Selector) -> Locator:
        return self.page.locator(playwright_selector(selector))

    def navigate(self, url: str) -> None:
        try:
            self.page.goto(url)
        except PlaywrightError as exc:
            raise NavigationError(f"Could not load {url}: {exc.message}") from exc

    def count(self, selector: Selector) -> int:
        locator = self._locator(selector)
        try:
            locator.first.wait_for(state="attached")
        except PlaywrightTimeoutError:
            LOGGER.debug("Timed out waiting for %s", selector.raw)
            return 0
        return locator.count()

    def click(self, selector: Selector) -> None:
        self._locator(selector).first.click()

    def type_text(self, selector: Selector, text: str) -> None:
        self._locator(selector).first.press_sequentially(text)

    def read_text(self, selector: Selector) -> str:
        return self._locator(selector).first.inner_text()

    def screenshot(self, path: str) -> None:
        self.page.screenshot(path=path)

    def close(self) -> None:
        try:
            self._browser.close()
        finally:
            self._playwright.stop()
