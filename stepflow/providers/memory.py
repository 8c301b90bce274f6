import logging
import threading
from typing import Dict, List

from stepflow.models.dsl import Test
from stepflow.models.errors import TestNotFoundError
from stepflow.providers.base import TestRepository

LOGGER = logging.getLogger(__name__)


class InMemoryTestRepository(TestRepository):
    def __init__(self, tests=()):
        self._tests: Dict[str, Test] = {}
        self._lock = threading.Lock()
        for test in tests:
            self.save(test)

    def get(self, test_id: str) -> Test:
        with self._lock:
            try:
                return self._tests[test_id]
            except KeyError:
                raise TestNotFoundError(test_id) from None

    def list(self) -> List[Test]:
        with self._lock:
            tests = list(self._tests.values())
        return sorted(tests, key=lambda test: test.created_at, reverse=True)

    def save(self, test: Test) -> Test:
        with self._lock:
            self._tests[test.id] = test
        LOGGER.info("Test saved: %s (ID: %s)", test.name, test.id)
        return test
