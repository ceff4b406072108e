"""Server-Sent-Events stream backing one tool-protocol session."""

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable

from gateway.core.api_keys import Principal
from gateway.core.sessions import HeartbeatOutcome, Session, SessionManager

logger = logging.getLogger(__name__)

HEARTBEAT_COMMENT = ": heartbeat\n\n"


def format_event(event: str, data: str) -> str:
    return f"event: {event}\ndata: {data}\n\n"


async def session_event_stream(
    session: Session,
    sessions: SessionManager,
    revalidate: Callable[[], Awaitable[Principal]],
    endpoint_url: str,
    heartbeat_interval: float,
) -> AsyncIterator[str]:
    """
    Emit the endpoint event, then heartbeats until the session ends.

    The generator is cancelled when the client disconnects; the ``finally``
    block removes the session synchronously so nothing is left behind.
    """
    session_id = session.session_id
    try:
        yield format_event("endpoint", endpoint_url)
        sessions.activate(session_id)
        while True:
            await asyncio.sleep(heartbeat_interval)
            outcome = await sessions.heartbeat(session_id, revalidate)
            if outcome is HeartbeatOutcome.EXPIRED:
                yield format_event("session_expired", "{}")
                return
            if outcome is HeartbeatOutcome.REVOKED:
                yield format_event("session_revoked", "{}")
                return
            yield HEARTBEAT_COMMENT
    finally:
        if sessions.discard(session_id, "closed"):
            logger.debug("Stream for session %s closed by transport", session_id)
