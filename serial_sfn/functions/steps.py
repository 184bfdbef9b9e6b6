import os
import logging

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))


class StepFailedError(Exception):
    pass


def handler(event, context):
    step_name = os.environ.get("STEP_NAME", "step")
    logger.info(f"Running step {step_name}")

    if not isinstance(event, dict):
        raise StepFailedError(f"Step {step_name} expects an object input, got {type(event).__name__}")

    if event.get("fail_at") == step_name:
        logger.error(f"Step {step_name} failing on request")
        raise StepFailedError(f"Step {step_name} failed")

    result = dict(event)
    result["history"] = list(event.get("history", [])) + [step_name]
    logger.info(f"Step {step_name} done, history: {result['history']}")
    return result
