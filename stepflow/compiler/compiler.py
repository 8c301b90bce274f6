import logging
from typing import Dict, List, Optional, Tuple

from stepflow.compiler.emitters.base import Emitter
from stepflow.compiler.emitters.playwright import PlaywrightJavaScriptEmitter, PlaywrightPythonEmitter
from stepflow.compiler.emitters.selenium import SeleniumJavaEmitter, SeleniumPythonEmitter
from stepflow.models.dsl import Test
from stepflow.models.errors import UnsupportedTargetError

LOGGER = logging.getLogger(__name__)


def _key(tool: str, platform: str) -> Tuple[str, str]:
    return tool.strip().lower(), platform.strip().lower()


class Compiler:
    """
    Renders a Test into source for an external automation framework.

    Pure and stateless after construction: no browser, no files, same text
    for the same Test.
    """

    def __init__(self):
        self._emitters: Dict[Tuple[str, str], Emitter] = {}
        self.register("selenium", "java", SeleniumJavaEmitter())
        self.register("selenium", "python", SeleniumPythonEmitter())
        self.register("playwright", "javascript", PlaywrightJavaScriptEmitter())
        self.register("playwright", "python", PlaywrightPythonEmitter())

    def register(self, tool: str, platform: str, emitter: Emitter) -> None:
        self._emitters[_key(tool, platform)] = emitter

    def targets(self) -> List[Tuple[str, str]]:
        return sorted(self._emitters)

    def emitter_for(self, tool: str, platform: str) -> Emitter:
        try:
            return self._emitters[_key(tool, platform)]
        except KeyError:
            raise UnsupportedTargetError(tool, platform) from None

    def compile(self, test: Test, tool: Optional[str] = None, platform: Optional[str] = None) -> str:
        tool = tool or test.automation_tool
        platform = platform or test.target_platform
        try:
            emitter = self.emitter_for(tool, platform)
        except UnsupportedTargetError as exc:
            LOGGER.info("No emitter for %s/%s", tool, platform)
            return f"// {exc}"
        return emitter.emit(test)
