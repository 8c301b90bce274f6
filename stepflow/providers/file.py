import glob
import logging
import os
from datetime import datetime, timezone
from typing import Dict, List, Tuple

import yaml
from pydantic import ValidationError

from stepflow.models.dsl import Test
from stepflow.models.errors import MalformedStepError, RepositoryError, TestNotFoundError
from stepflow.providers.base import TestRepository
from stepflow.scenario.parser import parse_test_record

LOGGER = logging.getLogger(__name__)

PATTERNS = ("*.yaml", "*.yml", "*.json")


def load_test_file(path: str) -> Test:
    """Reads one Test definition (YAML or JSON) from ``path``."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise RepositoryError(f"{path} does not contain a test definition")

    # Hand-written files may omit identity; keep it stable across reloads
    record = dict(data)
    record.setdefault("id", os.path.splitext(os.path.basename(path))[0])
    if "created_at" not in record and "createdAt" not in record:
        record["created_at"] = datetime.fromtimestamp(os.path.getmtime(path), tz=timezone.utc)
    return parse_test_record(record)


class FileTestRepository(TestRepository):
    """Tests stored one per file in a directory."""

    def __init__(self, tests_dir: str):
        self.tests_dir = tests_dir
        if not os.path.exists(tests_dir):
            os.makedirs(tests_dir)

    def _scan(self) -> Dict[str, Tuple[str, Test]]:
        found = {}
        files = []
        for pattern in PATTERNS:
            files.extend(glob.glob(os.path.join(self.tests_dir, pattern)))
        LOGGER.debug("Loading %d test definitions from %s", len(files), self.tests_dir)

        for file_path in sorted(files):
            try:
                test = load_test_file(file_path)
            except (OSError, yaml.YAMLError, ValidationError, MalformedStepError, RepositoryError) as e:
                LOGGER.warning("Error loading %s: %s", file_path, e)
                continue
            found[test.id] = (file_path, test)
        return found

    def get(self, test_id: str) -> Test:
        try:
            return self._scan()[test_id][1]
        except KeyError:
            raise TestNotFoundError(test_id) from None

    def list(self) -> List[Test]:
        return sorted((test for _, test in self._scan().values()), key=lambda test: test.created_at, reverse=True)

    def save(self, test: Test) -> Test:
        existing = self._scan().get(test.id)
        filename = existing[0] if existing else os.path.join(self.tests_dir, f"{test.id}.yaml")
        with open(filename, "w", encoding="utf-8") as f:
            yaml.safe_dump(test.model_dump(mode="json"), f, sort_keys=False, allow_unicode=True)
        LOGGER.info("Saved test %s to %s", test.name, filename)
        return test
