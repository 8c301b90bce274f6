from typing import Optional


class StepflowError(Exception):
    """Base class for every error raised by stepflow."""


class MalformedStepError(StepflowError):
    """A step is missing a field its kind requires, or carries one it must not."""

    def __init__(self, kind: str, field: str, unexpected: bool = False):
        self.kind = kind
        self.field = field
        self.unexpected = unexpected
        if unexpected:
            message = f"Step of kind '{kind}' does not accept a '{field}'"
        else:
            message = f"Step of kind '{kind}' is missing required field '{field}'"
        super().__init__(message)


class StepError(StepflowError):
    """A step failed while a run was executing it."""

    def __init__(self, message: str, step_index: Optional[int] = None):
        self.step_index = step_index
        super().__init__(message)


class TargetResolutionError(StepError):
    pass


class AssertionFailure(StepError):
    pass


class NavigationError(StepError):
    pass


class UnsupportedTargetError(StepflowError):
    def __init__(self, tool: str, platform: str):
        self.tool = tool
        self.platform = platform
        super().__init__(f"Script generation for {tool} with {platform} is not implemented yet.")


class RepositoryError(StepflowError):
    pass


class TestNotFoundError(RepositoryError, KeyError):
    __test__ = False

    def __init__(self, test_id: str):
        self.test_id = test_id
        super().__init__(f"Test '{test_id}' not found")

    def __str__(self) -> str:
        return self.args[0]


class UnknownStepKindError(MalformedStepError):
    def __init__(self, kind: str):
        self.kind = kind
        self.field = "kind"
        self.unexpected = False
        StepflowError.__init__(self, f"Unknown step kind '{kind}'")
