import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, ClassVar, Iterable, List, Literal, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, model_validator

from stepflow.models.errors import MalformedStepError, UnknownStepKindError


class SelectorKind(str, Enum):
    ID = "id"
    NAME = "name"
    LINK_TEXT = "linkText"
    PARTIAL_LINK_TEXT = "partialLinkText"
    CSS = "css"
    XPATH = "xpath"
    TEXT = "text"


class XPathMode(str, Enum):
    RELATIVE = "relative"
    ABSOLUTE = "absolute"


class StepKind(str, Enum):
    NAVIGATE = "navigate"
    CLICK = "click"
    TYPE_TEXT = "type_text"
    ASSERT_TEXT = "assert_text"
    SCREENSHOT = "screenshot"


class Selector(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Optional[SelectorKind] = Field(None, description="Locator strategy. None means 'raw' is a native Playwright selector")
    raw: str = Field(..., min_length=1, description="Selector value for the strategy")


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class _StepBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    requires_selector: ClassVar[bool] = False
    requires_value: ClassVar[bool] = False
    accepts_value: ClassVar[bool] = False

    name: str = Field("", description="Human readable label shown in reports and generated comments")

    @model_validator(mode="before")
    @classmethod
    def _check_shape(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        kind = data.get("kind") or cls.model_fields["kind"].default
        data = dict(data)

        if _blank(data.get("selector")):
            if cls.requires_selector:
                raise MalformedStepError(kind, "selector")
            data.pop("selector", None)
        elif not cls.requires_selector:
            raise MalformedStepError(kind, "selector", unexpected=True)

        if _blank(data.get("value")):
            if cls.requires_value:
                raise MalformedStepError(kind, "value")
            data.pop("value", None)
        elif not (cls.requires_value or cls.accepts_value):
            raise MalformedStepError(kind, "value", unexpected=True)

        return data


class NavigateStep(_StepBase):
    requires_value: ClassVar[bool] = True

    kind: Literal["navigate"] = "navigate"
    value: str = Field(..., description="URL to load")


class ClickStep(_StepBase):
    requires_selector: ClassVar[bool] = True

    kind: Literal["click"] = "click"
    selector: Selector


class TypeTextStep(_StepBase):
    requires_selector: ClassVar[bool] = True
    requires_value: ClassVar[bool] = True

    kind: Literal["type_text"] = "type_text"
    selector: Selector
    value: str = Field(..., description="Text sent as keystrokes")


class AssertTextStep(_StepBase):
    requires_selector: ClassVar[bool] = True
    requires_value: ClassVar[bool] = True

    kind: Literal["assert_text"] = "assert_text"
    selector: Selector
    value: str = Field(..., description="Substring expected in the element's rendered text")


class ScreenshotStep(_StepBase):
    accepts_value: ClassVar[bool] = True

    kind: Literal["screenshot"] = "screenshot"
    value: Optional[str] = Field(None, description="Screenshot filename, generated when absent")


Step = Annotated[
    Union[NavigateStep, ClickStep, TypeTextStep, AssertTextStep, ScreenshotStep],
    Field(discriminator="kind"),
]

STEP_ADAPTER = TypeAdapter(Step)


def make_step(kind, name: str = "", selector: Optional[Selector] = None, value: Optional[str] = None):
    """Builds the step variant for ``kind``, raising MalformedStepError on a bad shape."""
    try:
        kind = StepKind(kind)
    except ValueError:
        raise UnknownStepKindError(str(kind)) from None
    data = {"kind": kind.value, "name": name}
    if selector is not None:
        data["selector"] = selector
    if value is not None:
        data["value"] = value
    return STEP_ADAPTER.validate_python(data)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Test(BaseModel):
    __test__ = False

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    steps: Tuple[Step, ...] = ()
    automation_tool: str = Field(
        "playwright",
        validation_alias=AliasChoices("automation_tool", "automationTool"),
    )
    target_platform: str = Field(
        "javascript",
        validation_alias=AliasChoices("target_platform", "targetPlatform", "programmingLanguage"),
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        validation_alias=AliasChoices("created_at", "createdAt"),
    )

    def with_steps(self, steps: Iterable[Any]) -> "Test":
        """Returns a copy whose step sequence is replaced wholesale."""
        validated = tuple(STEP_ADAPTER.validate_python(step) for step in steps)
        return self.model_copy(update={"steps": validated})


class RunStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"


class StepStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepResult(BaseModel):
    index: int
    name: str
    kind: StepKind
    status: StepStatus
    error: Optional[str] = None
    artifact: Optional[str] = None


class RunOutcome(BaseModel):
    run_id: str
    test_id: str
    status: RunStatus
    results: List[StepResult] = Field(default_factory=list)
    diagnostic_path: Optional[str] = None
    started_at: datetime
    finished_at: datetime

    @property
    def passed(self) -> bool:
        return self.status == RunStatus.PASSED
