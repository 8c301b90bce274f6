from stepflow.compiler.emitters.base import Emitter, class_name, function_name
from stepflow.locator.engines import playwright_selector
from stepflow.models.dsl import Selector


class PlaywrightJavaScriptEmitter(Emitter):
    comment_prefix = "//"
    indent = " " * 8

    def preamble(self, test):
        return [
            "const { chromium } = require('playwright');",
            "",
            f"async function {class_name(test.name)}() {{",
            "    const browser = await chromium.launch({ headless: false });",
            "    const context = await browser.newContext();",
            "    const page = await context.newPage();",
            "    try {",
        ]

    def postamble(self, test):
        return [
            "    } finally {",
            "        await browser.close();",
            "    }",
            "}",
            "",
            f"{class_name(test.name)}();",
        ]

    def locator(self, selector: Selector) -> str:
        return f"page.locator({self.literal(playwright_selector(selector))})"

    def navigate(self, step):
        return [f"await page.goto({self.literal(step.value)});"]

    def click(self, step):
        return [f"await {self.locator(step.selector)}.click();"]

    def type_text(self, step):
        return [f"await {self.locator(step.selector)}.pressSequentially({self.literal(step.value)});"]

    def assert_text(self, step):
        message = self.literal(f'Assertion failed! Expected text "{step.value}" not found in selector "{step.selector.raw}".')
        return [
            f"if (!(await {self.locator(step.selector)}.innerText()).includes({self.literal(step.value)})) {{",
            f"    throw new Error({message});",
            "}",
        ]

    def screenshot(self, step):
        if step.value:
            return [f"await page.screenshot({{ path: {self.literal(step.value)} }});"]
        return ["await page.screenshot({ path: `screenshot-${Date.now()}.png` });"]


class PlaywrightPythonEmitter(Emitter):
    """pytest module driving the Playwright sync API."""

    comment_prefix = "#"
    indent = " " * 8
    ascii_literals = False
    empty_body = "pass"

    def preamble(self, test):
        return [
            "import time",
            "",
            "from playwright.sync_api import expect, sync_playwright",
            "",
            "",
            f"# Test Case: {' '.join(test.name.split())}",
            f"def {function_name(test.name)}():",
            "    with sync_playwright() as p:",
            "        browser = p.chromium.launch(headless=False)",
            "        page = browser.new_page()",
        ]

    def postamble(self, test):
        return ["        browser.close()"]

    def locator(self, selector: Selector) -> str:
        return f"page.locator({self.literal(playwright_selector(selector))})"

    def navigate(self, step):
        return [f"page.goto({self.literal(step.value)})"]

    def click(self, step):
        return [f"{self.locator(step.selector)}.click()"]

    def type_text(self, step):
        return [f"{self.locator(step.selector)}.press_sequentially({self.literal(step.value)})"]

    def assert_text(self, step):
        return [f"expect({self.locator(step.selector)}).to_contain_text({self.literal(step.value)})"]

    def screenshot(self, step):
        if step.value:
            return [f"page.screenshot(path={self.literal(step.value)})"]
        return ['page.screenshot(path=f"screenshot-{int(time.time() * 1000)}.png")']
