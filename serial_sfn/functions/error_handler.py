import os
import json
import logging

logger = logging.getLogger()
logger.setLevel(os.environ.get("LOG_LEVEL", "INFO"))


def parse_cause(cause):
    """Lambda failures carry a JSON document as the error cause."""
    if not isinstance(cause, str):
        return cause
    try:
        return json.loads(cause)
    except json.JSONDecodeError:
        return cause


def handler(event, context):
    error = event.get("error") or {}
    error_name = error.get("Error", "Unknown")
    cause = parse_cause(error.get("Cause"))

    logger.error(f"Workflow failed with {error_name}: {cause}")

    workflow_input = {key: value for key, value in event.items() if key != "error"}
    return {
        "status": "FAILED",
        "error": error_name,
        "cause": cause,
        "input": workflow_input,
    }
