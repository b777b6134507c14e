"""Check Point management API client."""

from cpfeedman.checkpoint.directory import list_feed_names, list_gateway_names
from cpfeedman.checkpoint.feeds import build_kick_script, kick_feed, run_inventory
from cpfeedman.checkpoint.poller import PollResult, TaskPoller
from cpfeedman.checkpoint.scripts import run_script, show_tasks
from cpfeedman.checkpoint.session import CheckPointSession

__all__ = [
    "CheckPointSession",
    "PollResult",
    "TaskPoller",
    "build_kick_script",
    "kick_feed",
    "list_feed_names",
    "list_gateway_names",
    "run_inventory",
    "run_script",
    "show_tasks",
]
