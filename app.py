#!/usr/bin/env python3
import logging

import aws_cdk as cdk

from serial_sfn.serial_sfn_stack import SerialSfnStack
from serial_sfn.settings import DeploymentSettings
from serial_sfn.workflow_config import WorkflowConfig


settings = DeploymentSettings()
logging.basicConfig(level=settings.log_level_value, format='%(asctime)s - %(levelname)s - %(message)s')

app = cdk.App()
workflow_context = app.node.try_get_context("workflow") or {}
# `cdk synth -c workflow=...` hands the declaration over as a JSON string
if isinstance(workflow_context, str):
    workflow = WorkflowConfig.model_validate_json(workflow_context)
else:
    workflow = WorkflowConfig.model_validate(workflow_context)

SerialSfnStack(
    app, settings.stack_name,
    workflow=workflow,
    settings=settings,
    env=cdk.Environment(account=settings.target_account, region=settings.target_region),
)

app.synth()
