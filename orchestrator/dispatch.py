from __future__ import annotations
import asyncio

from orchestrator.exceptions import StepTimeoutError

TIMEOUT_MESSAGE = "Timeout: Step took too long"


async def act_with_timeout(agent, instruction: str, timeout_s: float) -> None:
    """
    Races agent.act() against a timer. The slower side is cancelled; a
    timeout always surfaces as StepTimeoutError, never as a hang.
    """
    try:
        await asyncio.wait_for(agent.act(instruction), timeout=timeout_s)
    except asyncio.TimeoutError as e:
        raise StepTimeoutError(TIMEOUT_MESSAGE) from e
