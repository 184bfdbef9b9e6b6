import logging
from typing import List, Optional, Union

from constructs import Construct
from aws_cdk import (
    Duration,
    RemovalPolicy,
    aws_logs as logs,
    aws_stepfunctions as sfn,
    aws_stepfunctions_tasks as tasks,
)

from serial_sfn.types import SerialSfnProps, SfnChoice, SfnConfig, SfnObject

logger = logging.getLogger(__name__)


class SerialSfnConstruct(Construct):
    """Serial Step Functions workflow of Lambda tasks.

    Each task can carry its own retry policy, choices branch the chain, and
    an optional error handler catches failures of the whole workflow.
    """

    def __init__(self, scope: Construct, construct_id: str, props: SerialSfnProps) -> None:
        super().__init__(scope, construct_id)

        self.state_machine: Optional[sfn.StateMachine] = None

        if not props.lambda_functions:
            logger.warning(f"No tasks given for {construct_id}, skipping state machine")
            return

        state_machine_name = props.state_machine_name

        # Wrap the chain so a single catch covers every task
        definition = sfn.Parallel(self, f"parallel-{construct_id}")
        definition.branch(self.chain_tasks(props.lambda_functions, True))

        error_handler = props.error_handler
        if error_handler:
            definition.add_catch(
                tasks.LambdaInvoke(
                    self, error_handler.name,
                    lambda_function=error_handler.function,
                    retry_on_service_exceptions=False,
                ),
                errors=error_handler.errors,
                # Handler receives the original input plus the error
                result_path="$.error",
            )

        log_group = logs.LogGroup(
            self, f"logGroup-{construct_id}",
            log_group_name=f"/aws/vendedlogs/states/{state_machine_name}",
            removal_policy=RemovalPolicy.DESTROY,
        )

        self.state_machine = sfn.StateMachine(
            self, state_machine_name,
            definition_body=sfn.DefinitionBody.from_chainable(definition),
            state_machine_name=state_machine_name,
            logs=sfn.LogOptions(
                destination=log_group,
                level=sfn.LogLevel.ALL,
            ),
        )
        logger.info(f"State machine {state_machine_name} defined")

    @staticmethod
    def retry_config(config: SfnConfig) -> dict:
        """Keyword arguments for ``add_retry`` built from a task's retry policy."""
        retry = {
            "interval": Duration.seconds(config.retry_interval),
            "max_attempts": config.retry_attempts,
        }
        if config.errors is not None:
            retry["errors"] = config.errors
        if config.backoff_rate is not None:
            retry["backoff_rate"] = config.backoff_rate
        return retry

    def chain_tasks(
        self,
        lambda_functions: List[Union[SfnObject, SfnChoice]],
        first: bool,
        nested: bool = False,
    ) -> sfn.IChainable:
        """Recursively chain tasks and choices in order.

        Args:
            lambda_functions: Task or choice descriptors, not mutated.
            first: Whether no Lambda task has run yet. The first task reads
                the execution input, every later one the previous ``Payload``.
            nested: Whether the descriptors form a branch of a choice.

        Returns:
            The single task, or a chain starting with it.
        """
        sfn_object, rest = lambda_functions[0], lambda_functions[1:]

        if isinstance(sfn_object, SfnChoice):
            task = self.add_choice(sfn_object, first, closes_branch=nested and not rest)
        else:
            task = tasks.LambdaInvoke(
                self, sfn_object.name,
                lambda_function=sfn_object.function,
                input_path=None if first else "$.Payload",
                retry_on_service_exceptions=False,
            )
            first = False
            if sfn_object.config:
                task.add_retry(**self.retry_config(sfn_object.config))
            logger.debug(f"Chained task {sfn_object.name}")

        if rest:
            return task.next(self.chain_tasks(rest, first, nested))
        return task

    def add_choice(self, choice: SfnChoice, first: bool, closes_branch: bool = False) -> sfn.Chain:
        """Build a choice whose branches rejoin before the next step.

        A choice closing the branch of another choice always gets a default,
        so the outer choice can route unmatched input onwards.
        """
        choice_state = sfn.Choice(self, choice.choice_name)

        for index, branch in enumerate(choice.choices):
            if branch.functions:
                choice_state.when(branch.condition, self.chain_tasks(branch.functions, first, True))
            else:
                choice_state.when(branch.condition, sfn.Pass(self, f"{choice.choice_name}-pass-{index}"))

        if choice.default_functions:
            choice_state.otherwise(self.chain_tasks(choice.default_functions, first, True))
        elif choice.default_functions is not None or closes_branch:
            choice_state.otherwise(sfn.Pass(self, f"{choice.choice_name}-default"))

        logger.debug(f"Chained choice {choice.choice_name} with {len(choice.choices)} branches")
        # Without a default, unmatched input continues with the next step
        return choice_state.afterwards(
            include_otherwise=choice.default_functions is None and not closes_branch,
        )
