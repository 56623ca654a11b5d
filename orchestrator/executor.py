from __future__ import annotations
from pathlib import Path
from typing import Any, Dict, List

from orchestrator import macros
from orchestrator.classify import classify, CodeEntry, DocumentWait, GenericAction, IdleWait, UploadMacro
from orchestrator.config import RunnerConfig
from orchestrator.dispatch import act_with_timeout
from orchestrator.exceptions import ActionExecutionError, SessionClosedError
from orchestrator.extractor import StepExtractor
from orchestrator.models import ScenarioResult, ScenarioSource, Step, PASSED, FAILED, NOT_COMPLETED
from orchestrator.recovery import is_fatal_session_error
from orchestrator.reporting import record_step, start_step, finish_step, SUCCEEDED, RECOVERING

NO_STEPS_MESSAGE = "No valid steps found"


class ScenarioExecutor:
    """
    Runs one scenario's steps in order against the chunk's session.

    Per step: pending -> running -> succeeded | failed | recovering.
    The first failure ends the scenario; a fatal session error hands over to
    recovery and the loop resumes at the next step.
    """

    def __init__(self, config: RunnerConfig, session, agent, reporter, recovery, extractor: StepExtractor = None):
        self.config = config
        self.session = session
        self.agent = agent
        self.reporter = reporter
        self.recovery = recovery
        self.extractor = extractor or StepExtractor(config)
        self.journals: Dict[str, List[Dict[str, Any]]] = {}

    def _shot_path(self, identifier: str, ordinal: int, failed: bool = False) -> Path:
        prefix = "FAILED-" if failed else ""
        return Path(self.config.screenshots_dir) / f"{prefix}{identifier}-step-{ordinal}.png"

    async def _failure_screenshot(self, identifier: str, ordinal: int) -> None:
        try:
            await self.session.page.screenshot(path=str(self._shot_path(identifier, ordinal, failed=True)))
        except Exception:
            pass

    async def _dispatch(self, steps: List[Step], idx: int) -> int:
        """Runs steps[idx]; returns how many following steps it consumed."""
        step = steps[idx]
        previous = steps[idx - 1].text if idx > 0 else None
        kind = classify(step.text, previous, idle_tag=self.config.idle_tag)
        page = self.session.page

        if isinstance(kind, IdleWait):
            await macros.idle_wait(self.config.idle_wait_s)
            return 0
        if isinstance(kind, UploadMacro):
            follow_on = steps[idx + 1: idx + 1 + self.config.upload_follow_on_steps]
            return await macros.run_upload_macro(page, self.agent, self.config, follow_on)
        if isinstance(kind, DocumentWait):
            await macros.wait_for_document(page, ceiling_s=self.config.poll_ceiling_s)
            return 0
        if isinstance(kind, CodeEntry):
            await macros.enter_code(page, kind.code)
            return 0
        if isinstance(kind, GenericAction):
            await act_with_timeout(self.agent, kind.text, self.config.step_timeout_s)
            return 0
        raise ActionExecutionError(f"Unsupported step kind: {type(kind).__name__}")

    async def run(self, scenario: ScenarioSource) -> ScenarioResult:
        ident = scenario.identifier
        print(f"\n[run] 🚦 Running scenario: {scenario.title} ({ident})")
        steps = self.extractor.resolve(scenario)

        if not steps:
            print(f"[WARN] No valid steps found in {ident!r}")
            self.reporter.report({"status": "skipped", "reason": NO_STEPS_MESSAGE, "scenario": ident})
            return ScenarioResult(identifier=ident, title=scenario.title,
                                  status=NOT_COMPLETED, error_message=NO_STEPS_MESSAGE)

        Path(self.config.screenshots_dir).mkdir(parents=True, exist_ok=True)
        records: List[Dict[str, Any]] = []
        self.journals[ident] = records

        i = 0
        while i < len(steps):
            step = steps[i]
            rec = record_step(records, step.ordinal, step.text)
            start_step(rec)
            print(f"[step {step.ordinal}/{len(steps)}] 🧩 {step.text!r}")
            try:
                page = self.session.page
                if page.is_closed():
                    raise SessionClosedError("Target page is already closed")
                await page.screenshot(path=str(self._shot_path(ident, step.ordinal)))

                consumed = await self._dispatch(steps, i)
                finish_step(rec, SUCCEEDED)
                for extra in steps[i + 1: i + 1 + consumed]:
                    finish_step(record_step(records, extra.ordinal, extra.text), SUCCEEDED)
                print(f"[step {step.ordinal}/{len(steps)}] ✅ passed")
                i += 1 + consumed
            except Exception as e:
                if is_fatal_session_error(e):
                    # the provoking step is abandoned, not retried
                    finish_step(rec, RECOVERING, str(e))
                    await self.recovery.recover()
                    i += 1
                    continue

                finish_step(rec, FAILED, str(e))
                print(f"[step {step.ordinal}/{len(steps)}] ❌ failed: {e}")
                await self._failure_screenshot(ident, step.ordinal)
                self.reporter.report({
                    "status": FAILED,
                    "scenario": ident,
                    "failedStep": step.text,
                    "errorMessage": str(e),
                })
                return ScenarioResult(identifier=ident, title=scenario.title, status=FAILED,
                                      failed_step=step.text, error_message=str(e))

        self.reporter.report({"status": PASSED, "scenario": ident, "totalSteps": len(steps)})
        return ScenarioResult(identifier=ident, title=scenario.title, status=PASSED)
