import pytest
from pydantic import ValidationError

from stepflow.models.dsl import (
    AssertTextStep,
    ClickStep,
    NavigateStep,
    ScreenshotStep,
    Selector,
    SelectorKind,
    Test,
    TypeTextStep,
    make_step,
)
from stepflow.models.errors import MalformedStepError, UnknownStepKindError


def test_make_step_builds_each_variant():
    login = Selector(kind=SelectorKind.ID, raw="login")

    assert isinstance(make_step("navigate", "open", value="https://example.com"), NavigateStep)
    assert isinstance(make_step("click", "press", selector=login), ClickStep)
    assert isinstance(make_step("type_text", "fill", selector=login, value="bob"), TypeTextStep)
    assert isinstance(make_step("assert_text", "check", selector=login, value="Hi"), AssertTextStep)
    assert isinstance(make_step("screenshot", "snap"), ScreenshotStep)


def test_missing_selector_is_reported_by_name():
    with pytest.raises(MalformedStepError) as excinfo:
        make_step("click", "press")
    assert excinfo.value.field == "selector"
    assert "selector" in str(excinfo.value)


def test_missing_value_is_reported_by_name():
    with pytest.raises(MalformedStepError) as excinfo:
        make_step("type_text", "fill", selector=Selector(kind=SelectorKind.CSS, raw="#q"))
    assert excinfo.value.field == "value"


def test_navigate_rejects_blank_url():
    with pytest.raises(MalformedStepError) as excinfo:
        NavigateStep(name="open", value="   ")
    assert excinfo.value.field == "value"


def test_selector_on_navigate_is_rejected():
    with pytest.raises(MalformedStepError) as excinfo:
        make_step("navigate", "open", selector=Selector(kind=SelectorKind.ID, raw="x"), value="https://example.com")
    assert excinfo.value.unexpected
    assert excinfo.value.field == "selector"


def test_value_on_click_is_rejected():
    with pytest.raises(MalformedStepError):
        make_step("click", "press", selector=Selector(kind=SelectorKind.ID, raw="go"), value="oops")


def test_direct_construction_is_validated():
    with pytest.raises(MalformedStepError):
        ClickStep(name="press")


def test_screenshot_value_is_optional():
    step = make_step("screenshot", "snap")
    assert step.value is None


def test_unknown_kind():
    with pytest.raises(UnknownStepKindError):
        make_step("hover", "move")


def test_test_accepts_designer_keys():
    test = Test.model_validate({
        "id": "abc",
        "name": "Login Flow",
        "automationTool": "selenium",
        "programmingLanguage": "java",
        "createdAt": "2024-05-01T10:00:00+00:00",
        "steps": [
            {"kind": "navigate", "name": "open", "value": "https://example.com"},
            {"kind": "click", "name": "login", "selector": {"kind": "id", "raw": "login"}},
        ],
    })

    assert test.automation_tool == "selenium"
    assert test.target_platform == "java"
    assert test.created_at.year == 2024
    assert [step.kind for step in test.steps] == ["navigate", "click"]
    assert test.steps[1].selector.kind == SelectorKind.ID


def test_malformed_step_inside_test_is_surfaced():
    with pytest.raises(MalformedStepError):
        Test.model_validate({"name": "broken", "steps": [{"kind": "assert_text", "name": "check", "value": "Hi"}]})


def test_with_steps_replaces_sequence_wholesale():
    original = Test(name="flow", steps=[make_step("navigate", "open", value="https://a.example")])
    replacement = [
        make_step("screenshot", "snap", value="a.png"),
        {"kind": "navigate", "name": "open b", "value": "https://b.example"},
    ]

    updated = original.with_steps(replacement)

    assert updated.id == original.id
    assert [step.kind for step in updated.steps] == ["screenshot", "navigate"]
    assert [step.kind for step in original.steps] == ["navigate"]


def test_test_is_immutable():
    test = Test(name="flow")
    with pytest.raises(ValidationError):
        test.name = "other"


def test_selector_requires_raw_value():
    with pytest.raises(ValidationError):
        Selector(kind=SelectorKind.CSS, raw="")
