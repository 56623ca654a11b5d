from __future__ import annotations
import asyncio, time
from typing import Any, Dict, List, Optional

from act_agent import ActAgent
from orchestrator import reporting
from orchestrator.browser import open_session
from orchestrator.config import RunnerConfig
from orchestrator.exceptions import SetupError
from orchestrator.models import SessionChunk
from orchestrator.scheduler import ChunkRunner, partition, run_chunks
from tracker import LinearTracker


# ---------- helpers ----------

async def _fetch_chunks(config: RunnerConfig, tracker) -> List[SessionChunk]:
    if config.target_issue_id:
        print(f"[setup] 📥 Fetching issue {config.target_issue_id}...")
        issue = await asyncio.to_thread(tracker.issue_by_id, config.target_issue_id)
        return [SessionChunk(session_id="session-target", scenarios=[issue])]

    labeled, project = [], []
    if config.tracker_label:
        print(f"[setup] 📥 Fetching issues labelled {config.tracker_label!r}...")
        labeled = await asyncio.to_thread(tracker.issues_by_label, config.tracker_label)
    if config.project_name:
        print(f"[setup] 📥 Fetching issues of project {config.project_name!r}...")
        project = await asyncio.to_thread(tracker.issues_by_project, config.project_name)
    print(f"[setup] 📄 Found {len(labeled)} labelled + {len(project)} project issue(s)")
    return partition(labeled, project, config.split_threshold)


def _agent_factory(use_llm: bool):
    def make(page, config: RunnerConfig) -> ActAgent:
        return ActAgent.from_config(page, config, use_llm=use_llm)
    return make


# ---------- public API ----------

async def run(config: RunnerConfig, *, tracker=None, sink=None, use_llm: bool = True,
              session_factory=open_session, agent_factory=None) -> int:
    """
    Fetch -> partition -> run chunks concurrently -> summary. Returns the
    process exit code: 1 when any scenario failed or the run hit an error.
    """
    reporter = reporting.StatusReporter(sink)
    started_ts = time.time()

    try:
        tracker = tracker or LinearTracker(config.linear_api_key, config.linear_api_url)
        chunks = await _fetch_chunks(config, tracker)
    except SetupError as e:
        print(f"\n🚨 Run aborted during setup: {e}")
        reporter.report({"status": "error", "reason": str(e)})
        return 1

    if not chunks:
        print("[WARN] No issues found.")
        reporter.report({"status": "skipped", "reason": "no_issues"})
        return 0

    for c in chunks:
        print(f"[setup] {c.session_id}: {', '.join(s.identifier for s in c.scenarios)}")

    runners = [
        ChunkRunner(config, c, reporter, session_factory, agent_factory or _agent_factory(use_llm))
        for c in chunks
    ]
    results, errors = await run_chunks(runners, config.stagger_s)

    summary = reporting.aggregate(results)
    reporting.print_summary(summary)

    journals: Dict[str, List[Dict[str, Any]]] = {}
    for r in runners:
        journals.update(r.journals)
    paths = reporting.write_summary(summary, config.reports_dir, started_ts, errors=errors, journals=journals)
    print(f"\n[report] {paths['txt']}\n[report] {paths['html']}")

    reporter.report(reporting.run_payload(summary))
    if errors:
        for e in errors:
            print(f"🚨 {e}")
        reporter.report({"status": "error", "reason": "; ".join(errors)})

    return 1 if (summary.status == "failed" or errors) else 0
