import os
from typing import Dict, Optional

from constructs import Construct
from aws_cdk import (
    CfnOutput,
    Duration,
    Stack,
    aws_lambda as lambda_,
)

from serial_sfn.serial_sfn_construct import SerialSfnConstruct
from serial_sfn.settings import DeploymentSettings
from serial_sfn.workflow_config import WorkflowConfig

FUNCTIONS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "functions")


class SerialSfnStack(Stack):

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        workflow: WorkflowConfig,
        settings: Optional[DeploymentSettings] = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        self.settings = settings or DeploymentSettings()
        code = lambda_.Code.from_asset(FUNCTIONS_DIR)

        # One function per task, named after the state it backs
        self.functions: Dict[str, lambda_.IFunction] = {}
        for step in workflow.step_configs():
            self.functions[step.name] = self._create_function(
                code, step.name, step.handler, step.environment,
            )

        if workflow.error_handler is not None:
            handler = workflow.error_handler
            self.functions[handler.name] = self._create_function(
                code, handler.name, handler.handler, handler.environment,
            )

        self.workflow = SerialSfnConstruct(
            self, "SerialSfn",
            workflow.to_props(self.functions),
        )

        state_machine = self.workflow.state_machine
        if state_machine is not None:
            CfnOutput(self, "StateMachineArn", value=state_machine.state_machine_arn)
            CfnOutput(self, "StateMachineName", value=state_machine.state_machine_name)

    def _create_function(self, code, name, handler, environment) -> lambda_.Function:
        return lambda_.Function(
            self, f"{name}Function",
            runtime=lambda_.Runtime.PYTHON_3_12,
            code=code,
            handler=handler,
            memory_size=self.settings.lambda_memory_size,
            timeout=Duration.seconds(self.settings.lambda_timeout_seconds),
            environment={
                "STEP_NAME": name,
                "LOG_LEVEL": self.settings.log_level,
                **environment,
            },
        )
