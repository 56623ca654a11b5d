from __future__ import annotations

from orchestrator.exceptions import ChunkAbortedError, SessionClosedError

# page already closed / low-level transport gone
FATAL_SIGNATURES = ("Target page", "Target closed", "cdpSession.send")


def is_fatal_session_error(exc: BaseException) -> bool:
    if isinstance(exc, SessionClosedError):
        return True
    msg = str(exc)
    return any(sig in msg for sig in FATAL_SIGNATURES)


class SessionRecovery:
    """
    Replaces a dead page: new context + page, agent re-attached, forced login.
    The step that tripped the error is not retried; the caller moves on to
    the next ordinal.
    """

    def __init__(self, session, agent, authenticator):
        self.session = session
        self.agent = agent
        self.authenticator = authenticator
        self.recoveries = 0

    async def recover(self) -> None:
        print("[recovery] 🔁 Browser/page closed, restarting session...")
        try:
            page = await self.session.reopen()
            self.agent.attach(page)
            await self.authenticator.login(forced=True)
        except Exception as e:
            raise ChunkAbortedError(f"Session recovery failed: {e}") from e
        self.recoveries += 1
        print("[recovery] ✅ Recovered session. Continuing with the next step...")
