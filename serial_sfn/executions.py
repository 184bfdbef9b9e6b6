"""Start executions of a deployed state machine and wait for their outcome."""

import argparse
import json
import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)

RUNNING = "RUNNING"
SUCCEEDED = "SUCCEEDED"


def start_execution(client, state_machine_arn: str, payload: dict, name: Optional[str] = None) -> str:
    response = client.start_execution(
        stateMachineArn=state_machine_arn,
        name=name or f"run-{uuid.uuid4()}",
        input=json.dumps(payload),
    )
    logger.info(f"Started execution {response['executionArn']}")
    return response["executionArn"]


def wait_for_execution(client, execution_arn: str, poll_interval: float = 2.0, timeout: float = 300.0) -> dict:
    """Poll an execution until it leaves the ``RUNNING`` status.

    Raises:
        TimeoutError: The execution is still running after ``timeout`` seconds.
    """
    deadline = time.monotonic() + timeout
    while True:
        description = client.describe_execution(executionArn=execution_arn)
        if description["status"] != RUNNING:
            return description
        if time.monotonic() >= deadline:
            raise TimeoutError(f"Execution {execution_arn} still running after {timeout:.0f}s")
        time.sleep(poll_interval)


def run_executions(
    client,
    state_machine_arn: str,
    payloads: List[dict],
    max_workers: int = 5,
    poll_interval: float = 2.0,
    timeout: float = 300.0,
) -> List[dict]:
    """Run one execution per payload concurrently.

    Returns:
        The final ``describe_execution`` response of each run, in payload order.
    """

    def run(index, payload):
        start_time = time.time()
        execution_arn = start_execution(client, state_machine_arn, payload)
        description = wait_for_execution(client, execution_arn, poll_interval, timeout)
        elapsed = time.time() - start_time
        if description["status"] == SUCCEEDED:
            logger.info(f"Execution {index} succeeded - Time: {elapsed:.2f}s")
        else:
            logger.error(f"Execution {index} ended {description['status']} - Time: {elapsed:.2f}s")
        return description

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(run, index + 1, payload) for index, payload in enumerate(payloads)]
        return [future.result() for future in futures]


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: {value}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="serial-sfn-run")
    parser.add_argument("--state-machine-arn", required=True)
    parser.add_argument("--input", default="{}", help="JSON input of each execution")
    parser.add_argument("--count", type=positive_int, default=1)
    parser.add_argument("--concurrency", type=positive_int, default=5)
    parser.add_argument("--poll-interval", type=float, default=2.0)
    parser.add_argument("--timeout", type=float, default=300.0)
    parser.add_argument("--region")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level, format='%(asctime)s - %(levelname)s - %(message)s')

    try:
        payload = json.loads(args.input)
    except json.JSONDecodeError as e:
        parser.error(f"--input is not valid JSON: {e}")

    client = boto3.client("stepfunctions", region_name=args.region)
    start_time = time.time()
    try:
        results = run_executions(
            client,
            args.state_machine_arn,
            [payload] * args.count,
            max_workers=args.concurrency,
            poll_interval=args.poll_interval,
            timeout=args.timeout,
        )
    except (ClientError, TimeoutError) as e:
        logger.error(f"Executions aborted: {e}")
        return 1

    succeeded = len([r for r in results if r["status"] == SUCCEEDED])
    failed = len(results) - succeeded
    logger.info(f"Executions completed - Total time: {time.time() - start_time:.2f}s")
    logger.info(f"Successful executions: {succeeded}, Failed executions: {failed}")
    return 0 if failed == 0 else 1


if __name__ == "__main__":
    raise SystemExit(main())
