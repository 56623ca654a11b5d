from __future__ import annotations
import asyncio
from typing import Any, Dict, Optional

from act_agent.actions import ACTION_REGISTRY
from act_agent.local_provider import suggest_action, summarize_observation
from act_agent.ollama_client import chat_simple
from act_agent.perception import perceive
from act_agent.planner import build_prompt, coerce_action
from act_agent.schemas import ActionSpec
from orchestrator.config import RunnerConfig
from orchestrator.exceptions import ActionExecutionError


class ActAgent:
    """
    Performs one free-text instruction on the page it is attached to:
    perceive -> plan (Ollama, then local rules) -> run action + fallbacks.
    """

    def __init__(self, page, *, host: str, model: str, base_url: Optional[str] = None,
                 timeout_ms: int = 7000, use_llm: bool = True):
        self.page = page
        self.host = host
        self.model = model
        self.base_url = base_url
        self.timeout_ms = timeout_ms
        self.use_llm = use_llm

    @classmethod
    def from_config(cls, page, config: RunnerConfig, use_llm: bool = True) -> "ActAgent":
        return cls(page, host=config.ollama_host, model=config.ollama_model,
                   base_url=config.app_base_url or None, timeout_ms=config.action_timeout_ms,
                   use_llm=use_llm)

    def attach(self, page) -> None:
        self.page = page

    async def plan(self, instruction: str) -> ActionSpec:
        obs = await perceive(self.page)
        spec = None
        if self.use_llm:
            raw = await asyncio.to_thread(chat_simple, build_prompt(instruction, obs),
                                          host=self.host, model=self.model)
            spec = coerce_action(raw, instruction)
        if spec is None:
            spec = suggest_action(instruction, obs)
        if spec is None:
            raise ActionExecutionError(
                f"Could not resolve an action for {instruction!r} ({summarize_observation(obs)})"
            )
        return spec

    async def _run(self, action: Dict[str, Any]) -> None:
        fn = ACTION_REGISTRY.get(action["type"])
        if not fn:
            raise ActionExecutionError(f"Unknown action type: {action['type']}")
        await fn(
            self.page,
            selector=action.get("selector"),
            value=action.get("value"),
            base_url=self.base_url,
            timeout_ms=self.timeout_ms,
        )

    async def act(self, instruction: str) -> None:
        spec = await self.plan(instruction)
        last_err: Optional[Exception] = None
        for action in spec.candidates():
            try:
                await self._run(action)
                return
            except Exception as e:
                last_err = e
                print(f"[agent] {action.get('type')} {action.get('selector') or action.get('value')!r} failed: {e}")
        raise ActionExecutionError(str(last_err) if last_err else f"No action to run for {instruction!r}")
