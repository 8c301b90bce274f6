from stepflow.compiler.emitters.base import Emitter, class_name, function_name, text_xpath
from stepflow.models.dsl import Selector, SelectorKind

_JAVA_BY = {
    SelectorKind.ID: "By.id",
    SelectorKind.NAME: "By.name",
    SelectorKind.LINK_TEXT: "By.linkText",
    SelectorKind.PARTIAL_LINK_TEXT: "By.partialLinkText",
    SelectorKind.CSS: "By.cssSelector",
    SelectorKind.XPATH: "By.xpath",
}

_PYTHON_BY = {
    SelectorKind.ID: "By.ID",
    SelectorKind.NAME: "By.NAME",
    SelectorKind.LINK_TEXT: "By.LINK_TEXT",
    SelectorKind.PARTIAL_LINK_TEXT: "By.PARTIAL_LINK_TEXT",
    SelectorKind.CSS: "By.CSS_SELECTOR",
    SelectorKind.XPATH: "By.XPATH",
}


class SeleniumJavaEmitter(Emitter):
    comment_prefix = "//"
    indent = " " * 12

    def preamble(self, test):
        return [
            "import org.openqa.selenium.By;",
            "import org.openqa.selenium.WebDriver;",
            "import org.openqa.selenium.chrome.ChromeDriver;",
            "",
            f"public class {class_name(test.name)} {{",
            "    public static void main(String[] args) {",
            "        WebDriver driver = new ChromeDriver();",
            "        try {",
        ]

    def postamble(self, test):
        return [
            "        } finally {",
            "            driver.quit();",
            "        }",
            "    }",
            "}",
        ]

    def locator(self, selector: Selector) -> str:
        if selector.kind == SelectorKind.TEXT:
            return f"By.xpath({self.literal(text_xpath(selector.raw))})"
        # unrecorded kinds fall back to css, like the designer's default
        by = _JAVA_BY.get(selector.kind, "By.cssSelector")
        return f"{by}({self.literal(selector.raw)})"

    def navigate(self, step):
        return [f"driver.get({self.literal(step.value)});"]

    def click(self, step):
        return [f"driver.findElement({self.locator(step.selector)}).click();"]

    def type_text(self, step):
        return [f"driver.findElement({self.locator(step.selector)}).sendKeys({self.literal(step.value)});"]

    def assert_text(self, step):
        message = self.literal(f'Expected text "{step.value}" not found in selector "{step.selector.raw}"')
        return [
            f"if (!driver.findElement({self.locator(step.selector)}).getText().contains({self.literal(step.value)})) {{",
            f"    throw new AssertionError({message});",
            "}",
        ]

    def screenshot(self, step):
        return ["// Add screenshot logic here"]


class SeleniumPythonEmitter(Emitter):
    comment_prefix = "#"
    indent = " " * 8
    ascii_literals = False
    empty_body = "pass"

    def preamble(self, test):
        return [
            "import time",
            "",
            "from selenium import webdriver",
            "from selenium.webdriver.common.by import By",
            "",
            "",
            f"# Test Case: {' '.join(test.name.split())}",
            f"def {function_name(test.name)}():",
            "    driver = webdriver.Chrome()",
            "    try:",
        ]

    def postamble(self, test):
        return [
            "    finally:",
            "        driver.quit()",
        ]

    def locator(self, selector: Selector) -> str:
        if selector.kind == SelectorKind.TEXT:
            return f"By.XPATH, {self.literal(text_xpath(selector.raw))}"
        by = _PYTHON_BY.get(selector.kind, "By.CSS_SELECTOR")
        return f"{by}, {self.literal(selector.raw)}"

    def navigate(self, step):
        return [f"driver.get({self.literal(step.value)})"]

    def click(self, step):
        return [f"driver.find_element({self.locator(step.selector)}).click()"]

    def type_text(self, step):
        return [f"driver.find_element({self.locator(step.selector)}).send_keys({self.literal(step.value)})"]

    def assert_text(self, step):
        return [f"assert {self.literal(step.value)} in driver.find_element({self.locator(step.selector)}).text"]

    def screenshot(self, step):
        if step.value:
            return [f"driver.save_screenshot({self.literal(step.value)})"]
        return ['driver.save_screenshot(f"screenshot-{int(time.time() * 1000)}.png")']
