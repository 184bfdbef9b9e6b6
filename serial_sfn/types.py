from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from typing import Any, Iterator, List, Optional, Union

STATE_MACHINE_NAME_PATTERN = r"^[A-Za-z0-9_-]{1,80}$"


class SfnConfig(BaseModel):
    retry_interval: int = Field(default=1, ge=1)
    retry_attempts: int = Field(default=3, ge=0)
    errors: Optional[List[str]] = None
    backoff_rate: Optional[float] = Field(default=None, ge=1)


class SfnObject(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    function: Any
    config: Optional[SfnConfig] = None

    @field_validator('function')
    @classmethod
    def function_required(cls, v):
        if v is None:
            raise ValueError("a Lambda function is required")
        return v


class SfnChoiceBranch(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    condition: Any
    functions: List[Union[SfnObject, "SfnChoice"]] = []

    @field_validator('condition')
    @classmethod
    def condition_required(cls, v):
        if v is None:
            raise ValueError("a choice condition is required")
        return v


class SfnChoice(BaseModel):
    choice_name: str = Field(min_length=1)
    choices: List[SfnChoiceBranch] = Field(min_length=1)
    default_functions: Optional[List[Union[SfnObject, "SfnChoice"]]] = None


SfnChoiceBranch.model_rebuild()
SfnChoice.model_rebuild()


class ErrorHandler(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    function: Any
    errors: List[str] = ["States.ALL"]


class SerialSfnProps(BaseModel):
    """Input of :class:`SerialSfnConstruct`.

    ``lambda_functions`` is executed in order; any element may be a choice
    whose branches hold further tasks or choices.
    """

    lambda_functions: List[Union[SfnObject, SfnChoice]]
    error_handler: Optional[ErrorHandler] = None
    state_machine_name: str = Field(pattern=STATE_MACHINE_NAME_PATTERN)

    @model_validator(mode='after')
    def unique_state_names(self):
        seen = set()
        # The state machine shares the construct scope with every state
        names = [self.state_machine_name] + list(iter_state_names(self.lambda_functions))
        if self.error_handler is not None:
            names.append(self.error_handler.name)
        for name in names:
            if name in seen:
                raise ValueError(f"duplicate state name: {name}")
            seen.add(name)
        return self


def iter_state_names(sfn_objects, nested: bool = False) -> Iterator[str]:
    """Yield every state id in declaration order, depth first.

    Includes the Pass states generated for empty branches and defaults.
    """
    for index, sfn_object in enumerate(sfn_objects):
        if not isinstance(sfn_object, SfnChoice):
            yield sfn_object.name
            continue

        yield sfn_object.choice_name
        for branch_index, branch in enumerate(sfn_object.choices):
            if branch.functions:
                yield from iter_state_names(branch.functions, True)
            else:
                yield f"{sfn_object.choice_name}-pass-{branch_index}"

        closes_branch = nested and index == len(sfn_objects) - 1
        if sfn_object.default_functions:
            yield from iter_state_names(sfn_object.default_functions, True)
        elif sfn_object.default_functions is not None or closes_branch:
            yield f"{sfn_object.choice_name}-default"
