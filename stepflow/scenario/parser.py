import logging
import re
import time
from typing import Any, Dict, List, Optional

from stepflow.models.dsl import STEP_ADAPTER, Selector, SelectorKind, StepKind, Test, make_step
from stepflow.models.errors import UnknownStepKindError

LOGGER = logging.getLogger(__name__)

# Keywords used by the designer's scenario text and stored step records
KEYWORDS = {
    "GOTO": StepKind.NAVIGATE,
    "NAVIGATE": StepKind.NAVIGATE,
    "OPEN": StepKind.NAVIGATE,
    "CLICK": StepKind.CLICK,
    "TYPE": StepKind.TYPE_TEXT,
    "TYPE_TEXT": StepKind.TYPE_TEXT,
    "FILL": StepKind.TYPE_TEXT,
    "ASSERT": StepKind.ASSERT_TEXT,
    "ASSERT_TEXT": StepKind.ASSERT_TEXT,
    "VERIFY_TEXT": StepKind.ASSERT_TEXT,
    "SCREENSHOT": StepKind.SCREENSHOT,
    "TAKE_SCREENSHOT": StepKind.SCREENSHOT,
}

SELECTOR_KINDS = {kind.value.lower(): kind for kind in SelectorKind}

LINE_PATTERN = re.compile(
    r'^(?P<keyword>\w+)'
    r'(?:\s+(?:(?P<selector_type>\w+)=)?(?P<selector>"(?:\\"|[^"])*"|\S+))?'
    r'\s*(?:with\s+value\s+(?P<value>.+))?$',
    re.IGNORECASE,
)


def _unquote(token: Optional[str]) -> Optional[str]:
    if token is None:
        return None
    token = token.strip()
    if len(token) >= 2 and token[0] == token[-1] == '"':
        token = token[1:-1].replace('\\"', '"')
    return token or None


def build_selector(raw: Optional[str], selector_type: Optional[str] = None) -> Optional[Selector]:
    """Selector for a recorded (type, value) pair; unknown types stay native."""
    if not raw:
        return None
    if not selector_type:
        return Selector(kind=None, raw=raw)
    kind = SELECTOR_KINDS.get(selector_type.lower())
    if kind is None:
        return Selector(kind=None, raw=f"{selector_type}={raw}")
    return Selector(kind=kind, raw=raw)


def _generated_screenshot_name() -> str:
    return f"screenshot-{int(time.time() * 1000)}.png"


def _build_step(kind: StepKind, name: str, target: Optional[str], selector_type: Optional[str], value: Optional[str]):
    # Navigate and Screenshot carry their payload in the target position
    if kind == StepKind.NAVIGATE:
        return make_step(kind, name, value=value or target)
    if kind == StepKind.SCREENSHOT:
        return make_step(kind, name, value=value or target or _generated_screenshot_name())
    return make_step(kind, name, selector=build_selector(target, selector_type), value=value)


def parse_step_record(record: Dict[str, Any]):
    """
    Converts a stored step into Step IR. Accepts both the IR shape
    (``kind``/``selector``/``value``) and designer records
    (``type``/``selector``/``selectorType``/``value``).
    """
    if "kind" in record:
        return STEP_ADAPTER.validate_python(record)

    keyword = str(record.get("type", "")).upper()
    kind = KEYWORDS.get(keyword)
    if kind is None:
        raise UnknownStepKindError(keyword)
    return _build_step(
        kind,
        record.get("name") or "",
        record.get("selector") or None,
        record.get("selectorType") or None,
        record.get("value") or None,
    )


def parse_test_record(data: Dict[str, Any]) -> Test:
    record = dict(data)
    record["steps"] = [parse_step_record(step) for step in record.get("steps") or []]
    return Test.model_validate(record)


class ScenarioParser:
    """
    Parses scenario text, one step per line:

        GOTO https://www.example.com
        TYPE css="input[name='q']" with value mobile
        CLICK id=search
        ASSERT_TEXT css=h1 with value Results
        TAKE_SCREENSHOT results.png
    """

    def parse_steps(self, text: str) -> List:
        steps = []
        for line_number, line in enumerate(text.splitlines(), start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            match = LINE_PATTERN.match(line)
            kind = KEYWORDS.get(match.group("keyword").upper()) if match else None
            if kind is None:
                LOGGER.warning("Skipping unrecognised scenario line %d: %s", line_number, line)
                continue
            steps.append(
                _build_step(
                    kind,
                    line,
                    _unquote(match.group("selector")),
                    match.group("selector_type"),
                    _unquote(match.group("value")),
                )
            )
        return steps

    def parse(self, text: str, name: str, automation_tool: str = "playwright", target_platform: str = "javascript") -> Test:
        return Test(
            name=name,
            steps=self.parse_steps(text),
            automation_tool=automation_tool,
            target_platform=target_platform,
        )
