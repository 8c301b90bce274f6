import json
import logging
import urllib.error
import urllib.request
from typing import List

from pydantic import ValidationError

from stepflow.models.dsl import Test
from stepflow.models.errors import MalformedStepError, RepositoryError, TestNotFoundError
from stepflow.providers.base import TestRepository
from stepflow.scenario.parser import parse_test_record

LOGGER = logging.getLogger(__name__)


class ApiTestRepository(TestRepository):
    """Read-only view of the tests listed by a designer backend at ``GET /api/tests``."""

    def __init__(self, api_url: str, timeout: float = 10.0):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def _fetch(self) -> list:
        url = f"{self.api_url}/api/tests"
        LOGGER.info("Fetching tests from %s...", url)
        try:
            with urllib.request.urlopen(url, timeout=self.timeout) as response:
                if response.status != 200:
                    raise RepositoryError(f"HTTP Error {response.status} from {url}")
                data = json.loads(response.read().decode("utf-8"))
        except (urllib.error.URLError, ValueError) as e:
            raise RepositoryError(f"Error fetching from API: {e}") from e

        if not isinstance(data, list):
            raise RepositoryError(f"Expected a list of tests from {url}")
        return data

    def list(self) -> List[Test]:
        tests = []
        for item in self._fetch():
            if not isinstance(item, dict):
                LOGGER.warning("Skipping non-object entry in test listing: %r", item)
                continue
            try:
                tests.append(parse_test_record(item))
            except (ValidationError, MalformedStepError) as e:
                LOGGER.warning("Skipping test %s: %s", item.get("id", "?"), e)
        return sorted(tests, key=lambda test: test.created_at, reverse=True)

    def get(self, test_id: str) -> Test:
        for test in self.list():
            if test.id == test_id:
                return test
        raise TestNotFoundError(test_id)

    def save(self, test: Test) -> Test:
        raise RepositoryError(f"{self.api_url} is a read-only test source")
