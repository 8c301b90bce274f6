import argparse
import logging
from typing import Optional

import yaml
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright
from pydantic import ValidationError

from stepflow import config
from stepflow.compiler.compiler import Compiler
from stepflow.executor.interpreter import Interpreter
from stepflow.executor.session import PlaywrightSession
from stepflow.locator.capture import capture_at
from stepflow.locator.dom import parse_html
from stepflow.locator.inference import LocatorInference
from stepflow.models.dsl import SelectorKind, XPathMode
from stepflow.models.errors import StepflowError
from stepflow.providers.api import ApiTestRepository
from stepflow.providers.file import FileTestRepository, load_test_file
from stepflow.scenario.parser import ScenarioParser

LOGGER = logging.getLogger("stepflow")


def _repository(args):
    if args.api_url:
        return ApiTestRepository(args.api_url)
    if args.tests_dir:
        return FileTestRepository(args.tests_dir)
    return None


def _load_test(args):
    """A test file path, or a test id when --tests-dir / --api-url is given."""
    repository = _repository(args)
    if repository is None:
        return load_test_file(args.test)
    return repository.get(args.test)


def _write_or_print(text: str, output: Optional[str]) -> None:
    if not output:
        print(text)
        return
    with open(output, "w", encoding="utf-8") as f:
        f.write(text)
    print(f"Saved to {output}")


def process_generate(args):
    """Handler for generate command"""
    test = _load_test(args)
    code = Compiler().compile(test, tool=args.tool, platform=args.platform)
    _write_or_print(code, args.output)
    return 0


def process_run(args):
    """Handler for run command"""
    test = _load_test(args)
    headless = False if args.headed else None
    interpreter = Interpreter(
        session_factory=lambda: PlaywrightSession(headless=headless),
        screenshots_dir=args.screenshots_dir,
    )
    outcome = interpreter.run(test)

    for result in outcome.results:
        line = f"  [{result.status.value:>7}] {result.index + 1}. {result.name or result.kind.value}"
        if result.error:
            line += f" -> {result.error}"
        print(line)
    if outcome.diagnostic_path:
        print(f"Error screenshot saved to {outcome.diagnostic_path}")
    print(f'Test "{test.name}" {outcome.status.value.upper()}.')
    return 0 if outcome.passed else 1


def process_locate(args):
    """Handler for locate command"""
    if args.html:
        with open(args.html, "r", encoding="utf-8") as f:
            root = parse_html(f.read())
        matches = root.find_all(args.tag)
        if len(matches) < args.nth:
            print(f"Error: document has {len(matches)} <{args.tag}> element(s), wanted #{args.nth}")
            return 2
        snapshot = matches[args.nth - 1].snapshot()
    else:
        with sync_playwright() as p:
            browser = getattr(p, config.BROWSER).launch(headless=config.HEADLESS)
            try:
                page = browser.new_page()
                page.goto(args.url)
                snapshot = capture_at(page, args.selector)
            finally:
                browser.close()

    selector = LocatorInference().infer(snapshot, args.kind, args.xpath_mode)
    if selector is None:
        print(f"No {args.kind} locator found for <{snapshot.tag}>")
        return 1
    print(selector.raw)
    return 0


def process_parse(args):
    """Handler for parse command"""
    with open(args.scenario_file, "r", encoding="utf-8") as f:
        text = f.read()

    if args.llm:
        # Imported lazily; needs OPENAI_API_KEY
        from stepflow.llm.parser import LLMParser
        test = LLMParser().parse(text, automation_tool=args.tool, target_platform=args.platform)
        if args.name:
            test = test.model_copy(update={"name": args.name})
    else:
        test = ScenarioParser().parse(text, args.name or "Untitled Test", args.tool, args.platform)

    print(f"Parsed {len(test.steps)} steps for '{test.name}'")
    if args.tests_dir:
        FileTestRepository(args.tests_dir).save(test)
        print(f"Saved test {test.id} to {args.tests_dir}")
    else:
        _write_or_print(yaml.safe_dump(test.model_dump(mode="json"), sort_keys=False, allow_unicode=True), args.output)
    return 0


def process_list(args):
    """Handler for list command"""
    repository = _repository(args)
    if repository is None:
        print("Error: --tests-dir or --api-url is required")
        return 2
    tests = repository.list()
    if not tests:
        print("No tests found.")
    for test in tests:
        print(f"{test.id}  {test.created_at:%Y-%m-%d %H:%M}  {test.automation_tool}/{test.target_platform}  {test.name} ({len(test.steps)} steps)")
    return 0


def _add_source_arguments(parser):
    parser.add_argument("test", help="Test definition file, or a test id with --tests-dir/--api-url")
    _add_repository_arguments(parser)


def _add_repository_arguments(parser):
    parser.add_argument("--tests-dir", help="Directory of stored test definitions")
    parser.add_argument("--api-url", help="Base URL of a designer backend serving /api/tests")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Replay UI tests or compile them to automation scripts")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log output (-v, -vv)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_gen = subparsers.add_parser("generate", help="Generate an automation script for a test")
    _add_source_arguments(parser_gen)
    parser_gen.add_argument("--tool", help="Automation tool (defaults to the test's own)")
    parser_gen.add_argument("--platform", help="Target language (defaults to the test's own)")
    parser_gen.add_argument("--output", help="Write the script to this file instead of stdout")

    parser_run = subparsers.add_parser("run", help="Replay a test in a live browser")
    _add_source_arguments(parser_run)
    parser_run.add_argument("--screenshots-dir", default=None, help="Directory for screenshots")
    parser_run.add_argument("--headed", action="store_true", help="Show the browser window")

    parser_locate = subparsers.add_parser("locate", help="Infer a locator for an element")
    source = parser_locate.add_mutually_exclusive_group(required=True)
    source.add_argument("--url", help="Page to open in a browser")
    source.add_argument("--html", help="Local HTML file")
    parser_locate.add_argument("--selector", help="Native selector picking the element (with --url)")
    parser_locate.add_argument("--tag", help="Tag name picking the element (with --html)")
    parser_locate.add_argument("--nth", type=int, default=1, help="Which <tag> element, 1-based (with --html)")
    parser_locate.add_argument("--kind", choices=[kind.value for kind in SelectorKind], default=SelectorKind.CSS.value)
    parser_locate.add_argument("--xpath-mode", choices=[mode.value for mode in XPathMode], default=XPathMode.RELATIVE.value)

    parser_parse = subparsers.add_parser("parse", help="Build a test from scenario text")
    parser_parse.add_argument("scenario_file", help="Scenario text file")
    parser_parse.add_argument("--name", help="Test name")
    parser_parse.add_argument("--tool", default="playwright", help="Automation tool")
    parser_parse.add_argument("--platform", default="javascript", help="Target language")
    parser_parse.add_argument("--llm", action="store_true", help="Treat the file as free-form text for the LLM")
    parser_parse.add_argument("--tests-dir", help="Save the test into this directory")
    parser_parse.add_argument("--output", help="Write the test YAML to this file")

    parser_list = subparsers.add_parser("list", help="List stored tests")
    _add_repository_arguments(parser_list)

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    log_level = getattr(logging, config.LOG_LEVEL.upper(), logging.WARNING)
    if args.verbose >= 2:
        log_level = logging.DEBUG
    elif args.verbose == 1:
        log_level = logging.INFO
    logging.basicConfig(level=log_level, format="%(levelname)s %(message)s")

    handlers = {
        "generate": process_generate,
        "run": process_run,
        "locate": process_locate,
        "parse": process_parse,
        "list": process_list,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 2

    if args.command == "locate":
        if args.url and not args.selector:
            parser.error("--selector is required with --url")
        if args.html and not args.tag:
            parser.error("--tag is required with --html")
        if args.nth < 1:
            parser.error("--nth counts from 1")

    try:
        return handler(args)
    except KeyboardInterrupt:
        LOGGER.warning("Interrupted by user.")
        return 130
    except (StepflowError, PlaywrightError, ValidationError, OSError, yaml.YAMLError) as exc:
        LOGGER.error("%s", exc)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
