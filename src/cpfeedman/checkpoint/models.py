"""Pydantic models for Check Point management API responses.

Only the fields cpfeedman reads are declared; everything else in the
responses is ignored.
"""

import base64
import binascii
import logging
from collections import Counter

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)

STATUS_IN_PROGRESS = "in progress"
STATUS_SUCCEEDED = "succeeded"


class _ApiModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class LoginResponse(_ApiModel):
    """Response of the ``login`` command."""

    sid: str = ""
    uid: str = ""
    url: str = ""
    session_timeout: int | None = Field(default=None, alias="session-timeout")
    api_server_version: str = Field(default="", alias="api-server-version")


class ApiObject(_ApiModel):
    """A named object in a ``show-*`` listing."""

    uid: str = ""
    name: str
    type: str = ""


class ObjectsPage(_ApiModel):
    """One page of a ``show-simple-gateways`` / ``show-network-feeds`` listing."""

    objects: list[ApiObject] = Field(default_factory=list)
    from_: int = Field(default=0, alias="from")
    to: int = 0
    total: int = 0

    def names(self) -> list[str]:
        return [obj.name for obj in self.objects]


class ScriptTask(_ApiModel):
    target: str = ""
    task_id: str = Field(alias="task-id")


class RunScriptResponse(_ApiModel):
    """Response of ``run-script``: one task per target."""

    tasks: list[ScriptTask] = Field(default_factory=list)

    def task_ids(self) -> list[str]:
        return [task.task_id for task in self.tasks]


class TaskDetailItem(_ApiModel):
    """Per-gateway detail of a task."""

    gateway_name: str = Field(default="", validation_alias=AliasChoices("gatewayName", "gateway-name"))
    status_code: str = Field(default="", validation_alias=AliasChoices("statusCode", "status-code"))
    status_description: str = Field(
        default="", validation_alias=AliasChoices("statusDescription", "status-description")
    )
    response_message: str = Field(
        default="", validation_alias=AliasChoices("responseMessage", "response-message")
    )
    response_error: str = Field(
        default="", validation_alias=AliasChoices("responseError", "response-error")
    )


class TaskDetail(_ApiModel):
    """A task as returned by ``show-task`` with details-level "full"."""

    task_id: str = Field(alias="task-id")
    task_name: str = Field(default="", alias="task-name")
    status: str = ""
    progress_percentage: int = Field(default=0, alias="progress-percentage")
    task_details: list[TaskDetailItem] = Field(default_factory=list, alias="task-details")

    @property
    def is_succeeded(self) -> bool:
        return self.status == STATUS_SUCCEEDED

    @property
    def is_in_progress(self) -> bool:
        return self.status == STATUS_IN_PROGRESS

    def response_text(self) -> str:
        """Decode the script output of the first task detail.

        Returns:
            The decoded text, or an empty string when there is no output
            or it is not valid base64
        """
        if not self.task_details:
            return ""
        encoded = self.task_details[0].response_message
        if not encoded:
            return ""
        try:
            # line breaks in wrapped output are not part of the payload
            encoded = encoded.replace("\r", "").replace("\n", "")
            return base64.b64decode(encoded, validate=True).decode("utf-8", errors="replace")
        except (binascii.Error, ValueError):
            logger.debug(f"Task {self.task_id} response message is not valid base64")
            return ""


def tasks_by_status(tasks: list[TaskDetail]) -> dict[str, int]:
    """Count tasks per status string."""
    return dict(Counter(task.status for task in tasks))


class ShowTasksResponse(_ApiModel):
    """Response of ``show-task``."""

    tasks: list[TaskDetail] = Field(default_factory=list)

    def tasks_by_status(self) -> dict[str, int]:
        return tasks_by_status(self.tasks)

    def unfinished_task_ids(self) -> list[str]:
        return [task.task_id for task in self.tasks if task.is_in_progress]

    def finished_tasks(self) -> list[TaskDetail]:
        return [task for task in self.tasks if task.is_succeeded]

    def non_success_tasks(self) -> list[TaskDetail]:
        """Terminal tasks whose status is anything other than "succeeded"."""
        return [
            task for task in self.tasks
            if not task.is_succeeded and not task.is_in_progress
        ]
