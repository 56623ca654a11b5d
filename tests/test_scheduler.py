from unittest.mock import AsyncMock, patch

import pytest

from orchestrator.exceptions import ChunkAbortedError
from orchestrator.models import FAILED, PASSED, ScenarioResult, SessionChunk
from orchestrator.scheduler import ChunkRunner, partition, run_chunks

from tests.conftest import FakeAgent, FakeSession, scenario


def many(prefix, n):
    return [scenario(f"{prefix}-{i}", "- Given I open the app") for i in range(1, n + 1)]


# ---------- partition ----------

def test_small_project_set_gets_one_chunk():
    chunks = partition(many("L", 2), many("P", 6))
    assert [c.session_id for c in chunks] == ["session-labeled", "session-project"]
    assert [len(c) for c in chunks] == [2, 6]


def test_large_project_set_is_split_in_halves():
    chunks = partition([], many("P", 7))
    assert [c.session_id for c in chunks] == ["session-project-1", "session-project-2"]
    assert [len(c) for c in chunks] == [4, 3]
    assert [s.identifier for s in chunks[1].scenarios] == ["P-5", "P-6", "P-7"]


def test_split_threshold_is_configurable():
    chunks = partition([], many("P", 4), split_threshold=3)
    assert [len(c) for c in chunks] == [2, 2]


def test_scenario_selected_twice_runs_once_in_labeled_chunk():
    shared = scenario("X-1", "- Given a")
    chunks = partition([shared, shared], [shared, scenario("X-2", "- Given b")])
    assert [s.identifier for s in chunks[0].scenarios] == ["X-1"]
    assert [s.identifier for s in chunks[1].scenarios] == ["X-2"]


def test_empty_selections_give_no_chunks():
    assert partition([], []) == []
    assert [c.session_id for c in partition(many("L", 1), [])] == ["session-labeled"]


# ---------- chunk runner ----------

def runner_for(config, reporter, scenarios, agent=None, session=None):
    session = session or FakeSession()
    agent = agent or FakeAgent()

    async def session_factory(_config):
        return session

    runner = ChunkRunner(config, SessionChunk(session_id="session-test", scenarios=scenarios),
                         reporter, session_factory, lambda page, _config: agent)
    return runner, session, agent


@pytest.mark.asyncio
async def test_chunk_runs_scenarios_in_order(make_config, reporter):
    scenarios = [scenario("A-1", "- Given I open a"), scenario("A-2", "- Given I open b")]
    runner, session, agent = runner_for(make_config(), reporter, scenarios)

    results = await runner.run()

    assert [r.identifier for r in results] == ["A-1", "A-2"]
    assert all(r.status == PASSED for r in results)
    assert agent.calls[-2:] == ["I open a", "I open b"]
    assert session.closed
    assert set(runner.journals) == {"A-1", "A-2"}


@pytest.mark.asyncio
async def test_failing_scenario_does_not_stop_the_chunk(make_config, reporter):
    scenarios = [scenario("A-1", "- Given I break"), scenario("A-2", "- Given I open b")]
    agent = FakeAgent(failures={"I break": RuntimeError("element not found")})
    runner, *_ = runner_for(make_config(), reporter, scenarios, agent=agent)

    results = await runner.run()

    assert [r.status for r in results] == [FAILED, PASSED]


@pytest.mark.asyncio
async def test_reauthenticates_after_listed_scenario(make_config, reporter):
    config = make_config(reauthenticate_after=frozenset({"A-1"}))
    runner, session, agent = runner_for(config, reporter, [scenario("A-1", "- Given I open a"),
                                                           scenario("A-2", "- Given I open b")])
    await runner.run()

    # initial login + one forced login after A-1
    assert session.page.goto.await_count == 2
    assert agent.calls.count("Click the 'Sign In' button") == 2


@pytest.mark.asyncio
async def test_initial_login_failure_aborts_chunk(make_config, reporter, sink):
    agent = FakeAgent(failures={"Click the 'Sign In' button": RuntimeError("no button")})
    runner, session, _ = runner_for(make_config(), reporter, [scenario("A-1", "- Given I open a")], agent=agent)

    with pytest.raises(ChunkAbortedError, match="Initial login failed"):
        await runner.run()

    assert runner.results == []
    assert session.closed
    assert sink.statuses()[-1] == "error"
    assert sink.records[-1]["fields"]["session"]["value"] == "session-test"


@pytest.mark.asyncio
async def test_abort_keeps_results_of_finished_scenarios(make_config, reporter):
    agent = FakeAgent(failures={"I crash": RuntimeError("Target closed")})
    # recovery needs a forced login; make it fail on the reopened page
    session = FakeSession()

    async def broken_reopen():
        raise RuntimeError("browser has been closed")
    session.reopen = broken_reopen

    scenarios = [scenario("A-1", "- Given I open a"), scenario("A-2", "- Given I crash"), scenario("A-3", "- Given x")]
    runner, *_ = runner_for(make_config(), reporter, scenarios, agent=agent, session=session)

    with pytest.raises(ChunkAbortedError, match="during A-2"):
        await runner.run()

    assert [(r.identifier, r.status) for r in runner.results] == [("A-1", PASSED), ("A-2", FAILED)]
    assert "Session recovery failed" in runner.results[-1].error_message
    assert session.closed


# ---------- run_chunks ----------

class StubRunner:
    def __init__(self, session_id, results, error=None):
        self.chunk = SessionChunk(session_id=session_id)
        self.results = []
        self._results = results
        self._error = error

    async def run(self):
        self.results.extend(self._results)
        if self._error:
            raise self._error
        return self.results


@pytest.mark.asyncio
async def test_run_chunks_staggers_and_keeps_partial_results():
    ok = StubRunner("session-labeled", [ScenarioResult(identifier="L-1", status=PASSED)])
    bad = StubRunner("session-project", [ScenarioResult(identifier="P-1", status=FAILED)],
                     error=ChunkAbortedError("Initial login failed"))

    with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
        results, errors = await run_chunks([ok, bad], stagger_s=30)

    sleep.assert_awaited_once_with(30)
    assert [r.identifier for r in results] == ["L-1", "P-1"]
    assert errors == ["session-project: Initial login failed"]


@pytest.mark.asyncio
async def test_run_chunks_without_stagger_never_sleeps():
    runners = [StubRunner(f"s-{i}", []) for i in range(3)]
    with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
        results, errors = await run_chunks(runners, stagger_s=0)
    sleep.assert_not_awaited()
    assert results == [] and errors == []


@pytest.mark.parametrize("n_labeled, n_project", [(0, 1), (3, 6), (2, 7), (5, 13)])
def test_partition_covers_every_scenario_once(n_labeled, n_project):
    chunks = partition(many("L", n_labeled), many("P", n_project))
    idents = [s.identifier for c in chunks for s in c.scenarios]
    assert len(idents) == n_labeled + n_project == len(set(idents))
    assert 1 <= len(chunks) <= 3


@pytest.mark.asyncio
async def test_recoveries_are_counted_per_chunk(make_config, reporter, capsys):
    agent = FakeAgent(failures={"I crash": RuntimeError("Target page, context or browser has been closed")})
    runner, session, _ = runner_for(make_config(), reporter,
                                    [scenario("A-1", "- Given I crash", "- Then I open b")], agent=agent)

    results = await runner.run()

    assert results[0].status == PASSED
    assert session.reopened == 1
    assert runner.recoveries == 1
    assert "Session closed (1 session recovery(ies))." in capsys.readouterr().out
