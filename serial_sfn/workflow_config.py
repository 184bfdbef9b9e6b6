"""Workflow declarations read from the CDK context.

A workflow is declared as plain data under the ``workflow`` context key,
for example in ``cdk.json``::

    "workflow": {
        "state_machine_name": "serial-sfn",
        "steps": [
            {"name": "Validate"},
            {"name": "Transform", "retry": {"interval": 2, "max_attempts": 3}},
            {
                "choice_name": "Route",
                "choices": [
                    {
                        "condition": {"variable": "$.Payload.priority", "string_equals": "high"},
                        "steps": [{"name": "Escalate"}]
                    }
                ],
                "default": [{"name": "Archive"}]
            }
        ],
        "error_handler": {"name": "HandleError"}
    }

The models here validate that declaration and translate it into the
descriptors consumed by :class:`serial_sfn.serial_sfn_construct.SerialSfnConstruct`.
"""

from typing import Dict, Iterator, List, Mapping, Optional, Union

from aws_cdk import aws_lambda as lambda_, aws_stepfunctions as sfn
from pydantic import BaseModel, ConfigDict, Field, model_validator

from serial_sfn.types import (
    STATE_MACHINE_NAME_PATTERN,
    ErrorHandler,
    SerialSfnProps,
    SfnChoice,
    SfnChoiceBranch,
    SfnConfig,
    SfnObject,
)

DEFAULT_STEP_HANDLER = "steps.handler"
DEFAULT_ERROR_HANDLER = "error_handler.handler"

CONDITION_OPERATORS = (
    "string_equals",
    "numeric_equals",
    "numeric_greater_than",
    "numeric_less_than",
    "boolean_equals",
    "is_present",
)


class RetryConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    interval: int = Field(default=1, ge=1)
    max_attempts: int = Field(default=3, ge=0)
    errors: Optional[List[str]] = None
    backoff_rate: Optional[float] = Field(default=None, ge=1)

    def to_sfn_config(self) -> SfnConfig:
        return SfnConfig(
            retry_interval=self.interval,
            retry_attempts=self.max_attempts,
            errors=self.errors,
            backoff_rate=self.backoff_rate,
        )


class ConditionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    variable: str = Field(pattern=r"^\$")
    string_equals: Optional[str] = None
    numeric_equals: Optional[float] = None
    numeric_greater_than: Optional[float] = None
    numeric_less_than: Optional[float] = None
    boolean_equals: Optional[bool] = None
    is_present: Optional[bool] = None

    @model_validator(mode='after')
    def single_operator(self):
        given = [op for op in CONDITION_OPERATORS if getattr(self, op) is not None]
        if len(given) != 1:
            raise ValueError(
                f"condition on {self.variable} needs exactly one of "
                f"{', '.join(CONDITION_OPERATORS)}, got {given or 'none'}"
            )
        return self

    @property
    def operator(self) -> str:
        return next(op for op in CONDITION_OPERATORS if getattr(self, op) is not None)

    def to_condition(self) -> sfn.Condition:
        op = self.operator
        value = getattr(self, op)
        if op == "string_equals":
            return sfn.Condition.string_equals(self.variable, value)
        if op == "numeric_equals":
            return sfn.Condition.number_equals(self.variable, value)
        if op == "numeric_greater_than":
            return sfn.Condition.number_greater_than(self.variable, value)
        if op == "numeric_less_than":
            return sfn.Condition.number_less_than(self.variable, value)
        if op == "boolean_equals":
            return sfn.Condition.boolean_equals(self.variable, value)
        if value:
            return sfn.Condition.is_present(self.variable)
        return sfn.Condition.is_not_present(self.variable)


class StepConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    handler: str = DEFAULT_STEP_HANDLER
    retry: Optional[RetryConfig] = None
    environment: Dict[str, str] = {}


class BranchConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    condition: ConditionConfig
    steps: List[Union[StepConfig, "ChoiceConfig"]] = []


class ChoiceConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    choice_name: str = Field(min_length=1)
    choices: List[BranchConfig] = Field(min_length=1)
    default: Optional[List[Union[StepConfig, "ChoiceConfig"]]] = None


BranchConfig.model_rebuild()
ChoiceConfig.model_rebuild()


class ErrorHandlerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(default="HandleError", min_length=1)
    handler: str = DEFAULT_ERROR_HANDLER
    errors: List[str] = ["States.ALL"]
    environment: Dict[str, str] = {}


class WorkflowConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    state_machine_name: str = Field(pattern=STATE_MACHINE_NAME_PATTERN)
    steps: List[Union[StepConfig, ChoiceConfig]] = []
    error_handler: Optional[ErrorHandlerConfig] = None

    @model_validator(mode='after')
    def unique_step_names(self):
        names = list(_walk_names(self.steps))
        if self.error_handler is not None:
            names.append(self.error_handler.name)
        duplicates = sorted({name for name in names if names.count(name) > 1})
        if duplicates:
            raise ValueError(f"step and choice names must be unique, repeated: {', '.join(duplicates)}")
        return self

    def step_configs(self) -> Iterator[StepConfig]:
        """Every task of the workflow in declaration order, depth first."""
        return _walk_steps(self.steps)

    def to_props(self, functions: Mapping[str, lambda_.IFunction]) -> SerialSfnProps:
        """Translate the declaration into construct descriptors.

        Args:
            functions: Lambda function per task name, including the error
                handler's name when one is declared.

        Raises:
            KeyError: A task has no function in ``functions``.
        """
        error_handler = None
        if self.error_handler is not None:
            error_handler = ErrorHandler(
                name=self.error_handler.name,
                function=functions[self.error_handler.name],
                errors=self.error_handler.errors,
            )
        return SerialSfnProps(
            lambda_functions=_to_descriptors(self.steps, functions),
            error_handler=error_handler,
            state_machine_name=self.state_machine_name,
        )


def _walk_names(steps) -> Iterator[str]:
    for step in steps:
        if isinstance(step, ChoiceConfig):
            yield step.choice_name
            for branch in step.choices:
                yield from _walk_names(branch.steps)
            if step.default:
                yield from _walk_names(step.default)
        else:
            yield step.name


def _walk_steps(steps) -> Iterator[StepConfig]:
    for step in steps:
        if isinstance(step, ChoiceConfig):
            for branch in step.choices:
                yield from _walk_steps(branch.steps)
            if step.default:
                yield from _walk_steps(step.default)
        else:
            yield step


def _to_descriptors(steps, functions) -> List[Union[SfnObject, SfnChoice]]:
    descriptors = []
    for step in steps:
        if isinstance(step, ChoiceConfig):
            descriptors.append(SfnChoice(
                choice_name=step.choice_name,
                choices=[
                    SfnChoiceBranch(
                        condition=branch.condition.to_condition(),
                        functions=_to_descriptors(branch.steps, functions),
                    )
                    for branch in step.choices
                ],
                default_functions=(
                    None if step.default is None
                    else _to_descriptors(step.default, functions)
                ),
            ))
        else:
            descriptors.append(SfnObject(
                name=step.name,
                function=functions[step.name],
                config=step.retry.to_sfn_config() if step.retry else None,
            ))
    return descriptors
