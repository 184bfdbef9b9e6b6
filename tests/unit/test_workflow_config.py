import pytest
from aws_cdk import aws_stepfunctions as sfn
from pydantic import ValidationError

from serial_sfn.types import SfnChoice, SfnObject
from serial_sfn.workflow_config import (
    ChoiceConfig,
    ConditionConfig,
    RetryConfig,
    WorkflowConfig,
)

WORKFLOW = {
    "state_machine_name": "serial-sfn",
    "steps": [
        {"name": "Validate"},
        {"name": "Transform", "retry": {"interval": 2, "max_attempts": 5, "errors": ["States.Timeout"]}},
        {
            "choice_name": "Route",
            "choices": [
                {
                    "condition": {"variable": "$.Payload.priority", "string_equals": "high"},
                    "steps": [{"name": "Escalate", "handler": "escalate.handler"}],
                },
                {
                    "condition": {"variable": "$.Payload.priority", "string_equals": "skip"},
                },
            ],
            "default": [{"name": "Archive"}],
        },
        {"name": "Notify"},
    ],
    "error_handler": {"name": "HandleError"},
}

NAMES = ["Validate", "Transform", "Escalate", "Archive", "Notify", "HandleError"]


def test_steps_parsed_in_order():
    workflow = WorkflowConfig.model_validate(WORKFLOW)

    assert [step.name for step in workflow.step_configs()] == ["Validate", "Transform", "Escalate", "Archive", "Notify"]
    assert isinstance(workflow.steps[2], ChoiceConfig)
    assert workflow.steps[2].choices[1].steps == []
    assert workflow.steps[0].handler == "steps.handler"
    assert workflow.error_handler.handler == "error_handler.handler"
    assert workflow.error_handler.errors == ["States.ALL"]


def test_to_props_maps_functions():
    workflow = WorkflowConfig.model_validate(WORKFLOW)
    functions = {name: object() for name in NAMES}

    props = workflow.to_props(functions)

    assert props.state_machine_name == "serial-sfn"
    assert props.error_handler.function is functions["HandleError"]
    validate, transform, route, notify = props.lambda_functions
    assert isinstance(validate, SfnObject) and validate.function is functions["Validate"]
    assert validate.config is None
    assert transform.config.retry_interval == 2
    assert transform.config.retry_attempts == 5
    assert transform.config.errors == ["States.Timeout"]
    assert isinstance(route, SfnChoice)
    assert route.choices[0].functions[0].function is functions["Escalate"]
    assert route.choices[1].functions == []
    assert route.default_functions[0].name == "Archive"
    assert notify.name == "Notify"


def test_to_props_missing_function():
    workflow = WorkflowConfig.model_validate(WORKFLOW)

    with pytest.raises(KeyError):
        workflow.to_props({"Validate": object()})


def test_choice_without_default_keeps_none():
    workflow = WorkflowConfig.model_validate({
        "state_machine_name": "serial-sfn",
        "steps": [{
            "choice_name": "Route",
            "choices": [{"condition": {"variable": "$.go", "is_present": True}, "steps": [{"name": "Go"}]}],
        }],
    })

    props = workflow.to_props({"Go": object()})

    assert props.lambda_functions[0].default_functions is None


def test_duplicate_step_names_rejected():
    with pytest.raises(ValidationError, match="repeated: Validate"):
        WorkflowConfig.model_validate({
            "state_machine_name": "serial-sfn",
            "steps": [{"name": "Validate"}, {"name": "Validate"}],
        })


def test_unknown_keys_rejected():
    with pytest.raises(ValidationError):
        WorkflowConfig.model_validate({
            "state_machine_name": "serial-sfn",
            "steps": [{"name": "Validate", "retries": 3}],
        })


def test_choice_requires_branches():
    with pytest.raises(ValidationError):
        WorkflowConfig.model_validate({
            "state_machine_name": "serial-sfn",
            "steps": [{"choice_name": "Route", "choices": []}],
        })


def test_retry_config_to_sfn_config():
    config = RetryConfig(interval=3, max_attempts=1, backoff_rate=2.0).to_sfn_config()

    assert config.retry_interval == 3
    assert config.retry_attempts == 1
    assert config.backoff_rate == 2.0
    assert config.errors is None


@pytest.mark.parametrize("kwargs", [
    {"variable": "$.x"},
    {"variable": "$.x", "string_equals": "a", "numeric_equals": 1},
    {"variable": "x", "string_equals": "a"},
])
def test_condition_rejects_bad_shape(kwargs):
    with pytest.raises(ValidationError):
        ConditionConfig(**kwargs)


@pytest.mark.parametrize("kwargs, operator", [
    ({"string_equals": "a"}, "string_equals"),
    ({"numeric_equals": 1}, "numeric_equals"),
    ({"numeric_greater_than": 1}, "numeric_greater_than"),
    ({"numeric_less_than": 1}, "numeric_less_than"),
    ({"boolean_equals": False}, "boolean_equals"),
    ({"is_present": False}, "is_present"),
])
def test_condition_operator(kwargs, operator):
    condition = ConditionConfig(variable="$.x", **kwargs)

    assert condition.operator == operator
    assert isinstance(condition.to_condition(), sfn.Condition)


def test_choice_named_like_step_rejected():
    with pytest.raises(ValidationError, match="repeated: Route"):
        WorkflowConfig.model_validate({
            "state_machine_name": "serial-sfn",
            "steps": [
                {"name": "Route"},
                {
                    "choice_name": "Route",
                    "choices": [{"condition": {"variable": "$.go", "is_present": True}, "steps": [{"name": "Go"}]}],
                },
            ],
        })
