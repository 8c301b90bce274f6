from abc import ABC, abstractmethod
from typing import Iterable, List

from stepflow.models.dsl import Test


class TestRepository(ABC):
    """
    Storage for Tests, injected into whatever needs to look them up.
    The interpreter and compiler never talk to a repository; they only
    receive fully materialized Test values.
    """

    __test__ = False

    @abstractmethod
    def get(self, test_id: str) -> Test:
        """Returns the Test with ``test_id`` or raises TestNotFoundError."""
        pass

    @abstractmethod
    def list(self) -> List[Test]:
        """
        Returns every stored Test, newest first.
        """
        pass

    @abstractmethod
    def save(self, test: Test) -> Test:
        pass

    def replace_steps(self, test_id: str, steps: Iterable) -> Test:
        updated = self.get(test_id).with_steps(steps)
        return self.save(updated)
