"""Run one-time scripts on gateways and query the resulting tasks."""

import logging

from pydantic import ValidationError

from cpfeedman.checkpoint.models import RunScriptResponse, ShowTasksResponse
from cpfeedman.checkpoint.session import CheckPointSession
from cpfeedman.errors import DecodeError

logger = logging.getLogger(__name__)


async def run_script(
    session: CheckPointSession,
    script: str,
    script_name: str,
    targets: list[str],
) -> RunScriptResponse:
    """Submit a one-time script to the given gateways.

    An empty target list is passed through as-is; the server decides what
    that means.

    Returns:
        The parsed response holding one task id per target
    """
    payload = {
        "script": script,
        "targets": list(targets),
        "script-name": script_name,
        "script-type": "one time",
    }
    body = await session.call_authenticated("run-script", payload)
    try:
        response = RunScriptResponse.model_validate_json(body)
    except ValidationError as e:
        raise DecodeError(f"failed to parse run-script response: {e}") from e

    logger.info(f"Script '{script_name}' submitted to {len(targets)} gateway(s), tasks: {response.task_ids()}")
    return response


async def show_tasks(session: CheckPointSession, task_ids: list[str]) -> ShowTasksResponse:
    """Fetch full details for the given task ids."""
    payload = {
        "task-id": list(task_ids),
        "details-level": "full",
    }
    body = await session.call_authenticated("show-task", payload)
    try:
        return ShowTasksResponse.model_validate_json(body)
    except ValidationError as e:
        raise DecodeError(f"failed to parse show-task response: {e}") from e
