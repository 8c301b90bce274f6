import json
import re
from abc import ABC, abstractmethod
from typing import Callable, Dict, List

from stepflow.models.dsl import Selector, StepKind, Test


def quote(value: str, ensure_ascii: bool = True) -> str:
    # JSON string literals are valid in Java, JavaScript and Python. Python reads
    # a \uXXXX surrogate pair as two characters, so it needs ensure_ascii=False.
    return json.dumps(value, ensure_ascii=ensure_ascii)


def xpath_literal(value: str) -> str:
    if "'" not in value:
        return f"'{value}'"
    if '"' not in value:
        return f'"{value}"'
    pieces = ", \"'\", ".join(f"'{part}'" for part in value.split("'"))
    return f"concat({pieces})"


def text_xpath(value: str) -> str:
    return f"//*[text()={xpath_literal(value)}]"


def class_name(name: str) -> str:
    """Test name as a class identifier: whitespace and punctuation dropped."""
    cleaned = re.sub(r"\W", "", re.sub(r"\s+", "", name))
    if not cleaned:
        return "GeneratedTest"
    if cleaned[0].isdigit():
        cleaned = f"Test{cleaned}"
    return cleaned


def function_name(name: str) -> str:
    cleaned = re.sub(r"\W", "", re.sub(r"\s+", "_", name.strip().lower()))
    return f"test_{cleaned or 'generated'}"


class Emitter(ABC):
    """
    Renders a Test as source text for one (tool, platform) target.

    Output is preamble, one block per step in order, postamble. Every block
    opens with a ``Step <n>: <name>`` comment line.
    """

    comment_prefix = "//"
    indent = ""
    ascii_literals = True
    # statement for a block that would otherwise be empty
    empty_body = None

    def __init__(self):
        self._handlers: Dict[StepKind, Callable] = {
            StepKind.NAVIGATE: self.navigate,
            StepKind.CLICK: self.click,
            StepKind.TYPE_TEXT: self.type_text,
            StepKind.ASSERT_TEXT: self.assert_text,
            StepKind.SCREENSHOT: self.screenshot,
        }
        missing = set(StepKind) - set(self._handlers)
        if missing:
            raise TypeError(f"{type(self).__name__} has no handler for {sorted(k.value for k in missing)}")

    def emit(self, test: Test) -> str:
        lines = list(self.preamble(test))
        for number, step in enumerate(test.steps, start=1):
            # backslashes dropped: Java decodes \u escapes even inside comments
            label = " ".join(step.name.replace("\\", "").split()) or step.kind
            lines.append(f"{self.indent}{self.comment_prefix} Step {number}: {label}")
            for line in self._handlers[StepKind(step.kind)](step):
                lines.append(f"{self.indent}{line}")
        if not test.steps and self.empty_body:
            lines.append(f"{self.indent}{self.empty_body}")
        lines.extend(self.postamble(test))
        return "\n".join(lines) + "\n"

    def literal(self, value: str) -> str:
        """String literal for ``value`` in the target language."""
        return quote(value, self.ascii_literals)

    @abstractmethod
    def preamble(self, test: Test) -> List[str]:
        pass

    @abstractmethod
    def postamble(self, test: Test) -> List[str]:
        pass

    @abstractmethod
    def locator(self, selector: Selector) -> str:
        """Expression that locates ``selector`` in the target platform's idiom."""
        pass

    @abstractmethod
    def navigate(self, step) -> List[str]:
        pass

    @abstractmethod
    def click(self, step) -> List[str]:
        pass

    @abstractmethod
    def type_text(self, step) -> List[str]:
        pass

    @abstractmethod
    def assert_text(self, step) -> List[str]:
        pass

    @abstractmethod
    def screenshot(self, step) -> List[str]:
        pass
