"""Read-only listings of gateways and network feeds."""

import logging

from pydantic import ValidationError

from cpfeedman.checkpoint.models import ObjectsPage
from cpfeedman.checkpoint.session import CheckPointSession
from cpfeedman.errors import CheckPointError, DecodeError

logger = logging.getLogger(__name__)

PAGE_LIMIT = 500


async def _list_names(session: CheckPointSession, command: str, what: str) -> list[str]:
    payload = {
        "limit": PAGE_LIMIT,
        "details-level": "standard",
    }
    try:
        body = await session.call_authenticated(command, payload)
    except CheckPointError as e:
        raise e.with_context(f"failed to show {what}") from e

    try:
        page = ObjectsPage.model_validate_json(body)
    except ValidationError as e:
        raise DecodeError(f"failed to parse {what} response: {e}") from e

    names = page.names()
    if page.total > len(names):
        logger.warning(f"{command} returned {len(names)} of {page.total} {what}, only the first page is used")
    logger.debug(f"{command}: {names}")
    return names


async def list_gateway_names(session: CheckPointSession) -> list[str]:
    """Names of all simple gateways known to the management server."""
    return await _list_names(session, "show-simple-gateways", "gateways")


async def list_feed_names(session: CheckPointSession) -> list[str]:
    """Names of all network feed objects."""
    return await _list_names(session, "show-network-feeds", "feeds")
