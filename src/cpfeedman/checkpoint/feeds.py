"""Scripts that act on network feeds on the gateways."""

import logging

from cpfeedman.checkpoint.models import RunScriptResponse
from cpfeedman.checkpoint.scripts import run_script
from cpfeedman.checkpoint.session import CheckPointSession
from cpfeedman.errors import CheckPointError

logger = logging.getLogger(__name__)

KICK_LOG = "/var/log/kicked.log"
INVENTORY_LOG = "/var/log/cpfeedman.log"

# Lists the feed objects the gateway currently knows about.
INVENTORY_SCRIPT = (
    "(date; hostname; dynamic_objects -efo_show | grep -Po '^object name : \\K.*') "
    f"| tee -a {INVENTORY_LOG}"
)
INVENTORY_SCRIPT_NAME = "log date"


def build_kick_script(feed: str) -> str:
    """Shell snippet that logs a marker line and refreshes one feed."""
    return (
        f"(echo '---'; date; echo \"{feed}\" ; dynamic_objects -efo_update \"{feed}\" ) "
        f"| tee -a {KICK_LOG}"
    )


async def kick_feed(
    session: CheckPointSession,
    feed: str,
    targets: list[str],
) -> RunScriptResponse:
    """Ask every target gateway to refresh ``feed`` now.

    Does not wait for the resulting tasks; pass their ids to
    :class:`~cpfeedman.checkpoint.poller.TaskPoller` for that.
    """
    logger.info(f"Kicking feed '{feed}' on {targets}")
    try:
        return await run_script(session, build_kick_script(feed), f"kick feed {feed}", targets)
    except CheckPointError as e:
        raise e.with_context(f"failed to kick feed {feed}") from e


async def run_inventory(session: CheckPointSession, targets: list[str]) -> RunScriptResponse:
    """Log the date, hostname and known feed objects on every target."""
    return await run_script(session, INVENTORY_SCRIPT, INVENTORY_SCRIPT_NAME, targets)
