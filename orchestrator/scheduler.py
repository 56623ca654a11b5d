from __future__ import annotations
import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Sequence, Tuple

from orchestrator.auth import Authenticator
from orchestrator.config import RunnerConfig
from orchestrator.exceptions import ChunkAbortedError
from orchestrator.executor import ScenarioExecutor
from orchestrator.models import ScenarioResult, ScenarioSource, SessionChunk, FAILED
from orchestrator.recovery import SessionRecovery


def _unique(scenarios: Sequence[ScenarioSource], seen: set) -> List[ScenarioSource]:
    out = []
    for s in scenarios:
        if s.identifier in seen:
            continue
        seen.add(s.identifier)
        out.append(s)
    return out

def partition(labeled: Sequence[ScenarioSource], project: Sequence[ScenarioSource],
              split_threshold: int = 6) -> List[SessionChunk]:
    """
    Label-selected scenarios get their own chunk; project-selected ones get
    one chunk, or two halves when there are more than split_threshold.
    A scenario selected both ways runs once, in the labeled chunk.
    """
    seen: set = set()
    labeled = _unique(labeled, seen)
    rest = _unique(project, seen)

    chunks: List[SessionChunk] = []
    if labeled:
        chunks.append(SessionChunk(session_id="session-labeled", scenarios=labeled))
    if len(rest) > split_threshold:
        half = (len(rest) + 1) // 2
        chunks.append(SessionChunk(session_id="session-project-1", scenarios=rest[:half]))
        chunks.append(SessionChunk(session_id="session-project-2", scenarios=rest[half:]))
    elif rest:
        chunks.append(SessionChunk(session_id="session-project", scenarios=rest))
    return chunks


class ChunkRunner:
    """
    Owns one chunk's browser session, agent and login lifecycle. Results are
    appended as scenarios finish, so they survive a later abort.
    """

    def __init__(self, config: RunnerConfig, chunk: SessionChunk, reporter,
                 session_factory: Callable[[RunnerConfig], Awaitable[Any]],
                 agent_factory: Callable[[Any, RunnerConfig], Any]):
        self.config = config
        self.chunk = chunk
        self.reporter = reporter
        self.session_factory = session_factory
        self.agent_factory = agent_factory
        self.results: List[ScenarioResult] = []
        self.journals: Dict[str, List[Dict[str, Any]]] = {}
        self.recoveries = 0

    def _tag(self) -> str:
        return f"[{self.chunk.session_id}]"

    def _abort(self, reason: str) -> ChunkAbortedError:
        print(f"{self._tag()} 🛑 {reason}")
        self.reporter.report({"status": "error", "reason": reason, "session": self.chunk.session_id})
        return ChunkAbortedError(reason)

    async def run(self) -> List[ScenarioResult]:
        tag = self._tag()
        print(f"{tag} 🧵 Starting session with {len(self.chunk)} scenario(s)")
        session = await self.session_factory(self.config)
        recovery = None
        try:
            agent = self.agent_factory(session.page, self.config)
            auth = Authenticator(self.config, session, agent)
            recovery = SessionRecovery(session, agent, auth)
            executor = ScenarioExecutor(self.config, session, agent, self.reporter, recovery)
            self.journals = executor.journals

            try:
                await auth.login()
            except Exception as e:
                raise self._abort(f"Initial login failed: {e}") from e

            for scenario in self.chunk.scenarios:
                ident = scenario.identifier
                print(f"{tag} 🧪 Running {ident}")
                try:
                    result = await executor.run(scenario)
                except ChunkAbortedError as e:
                    self.results.append(ScenarioResult(identifier=ident, title=scenario.title, status=FAILED,
                                                       error_message=str(e)))
                    raise self._abort(f"{e} (during {ident})") from e
                except Exception as e:
                    print(f"{tag} Error running {ident}: {e}")
                    result = ScenarioResult(identifier=ident, title=scenario.title, status=FAILED,
                                            error_message=str(e))
                self.results.append(result)

                if self.config.needs_reauth_after(ident):
                    print(f"{tag} 🔁 Re-logging after {ident}...")
                    try:
                        await auth.login(forced=True)
                    except Exception as e:
                        raise self._abort(f"Re-login failed after {ident}: {e}") from e
        finally:
            if recovery is not None:
                self.recoveries = recovery.recoveries
            await session.close()
            print(f"{tag} Session closed ({self.recoveries} session recovery(ies)).")
        return self.results


async def _staggered(runner: ChunkRunner, delay_s: float) -> List[ScenarioResult]:
    if delay_s > 0:
        print(f"[{runner.chunk.session_id}] ⏱ Starting in {delay_s:.0f}s")
        await asyncio.sleep(delay_s)
    return await runner.run()

async def run_chunks(runners: Sequence[ChunkRunner], stagger_s: float) -> Tuple[List[ScenarioResult], List[str]]:
    """
    Starts chunk n after n * stagger_s and joins them all. Partial results of
    a failing chunk are kept; its error is returned alongside.
    """
    outcomes = await asyncio.gather(
        *(_staggered(r, i * stagger_s) for i, r in enumerate(runners)),
        return_exceptions=True,
    )
    results: List[ScenarioResult] = []
    errors: List[str] = []
    for runner, outcome in zip(runners, outcomes):
        results.extend(runner.results)
        if isinstance(outcome, BaseException):
            errors.append(f"{runner.chunk.session_id}: {outcome}")
    return results, errors
