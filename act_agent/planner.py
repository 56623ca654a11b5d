from __future__ import annotations
from typing import Any, Dict, Optional
import json, re

from act_agent.schemas import ActionSpec, Observation

ALLOWED_TYPES = {
    "goto", "click", "fill", "press", "select_option",
    "wait", "wait_for_selector",
    "assert_visible", "assert_text", "assert_contains", "assert_url",
}

SYSTEM_PROMPT = (
    "You are a browser automation agent. Given ONE instruction and a model of the "
    "current page (buttons, inputs, texts), output ONLY a STRICT JSON object: "
    "{\"action\": {type, selector?, value?}, \"fallbacks\": [{type, selector?, value?}]}. "
    f"type is one of: {', '.join(sorted(ALLOWED_TYPES))}. "
    "Use Playwright-like selectors (text=..., [data-testid='...'], input[placeholder='...']) "
    "taken from selector_hint when available. For click without a selector put the visible "
    "label in value. Checks ('Then I see ...', 'check that ...') become assert_contains on body. "
    "NO prose, NO markdown fences, ONLY JSON."
)

USER_PROMPT_TEMPLATE = """
PAGE_MODEL_JSON:
{page}

INSTRUCTION:
{instruction}
"""


def _prune_observation(obs: Observation, max_items: int = 40) -> Dict[str, Any]:
    """Keeps the prompt small: only the fields the model needs."""
    def slim(items):
        return [
            {k: v for k, v in el.model_dump().items() if v}
            for el in items[:max_items]
        ]
    return {
        "url": obs.url,
        "title": obs.title,
        "flags": {k: v for k, v in obs.flags.items() if v},
        "buttons": slim(obs.buttons),
        "inputs": slim(obs.inputs),
        "texts": obs.visible_texts[:max_items],
    }


def build_prompt(instruction: str, obs: Observation) -> str:
    page_min = json.dumps(_prune_observation(obs), ensure_ascii=False, separators=(",", ":"))
    return SYSTEM_PROMPT + "\n\n" + USER_PROMPT_TEMPLATE.format(page=page_min, instruction=instruction)


def _normalize_action(a: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(a, dict):
        return None
    # some models answer with "action" instead of "type"
    t = (a.get("type") or a.get("action") or "").strip().lower()
    if t == "assert_url_contains":
        t = "assert_url"
    if t not in ALLOWED_TYPES:
        return None
    out = {"type": t}
    for k in ("selector", "value"):
        if a.get(k) not in (None, ""):
            out[k] = a[k]
    if t == "assert_contains":
        out.setdefault("selector", "body")
    return out


def coerce_action(raw: Optional[str], instruction: str) -> Optional[ActionSpec]:
    """
    Strips fences, pulls out the first JSON object and keeps only actions the
    registry knows. None when nothing usable came back.
    """
    if not raw:
        return None
    s = raw.strip()
    if s.startswith("```"):
        s = re.sub(r"^```[a-zA-Z0-9]*", "", s).strip()
        if s.endswith("```"):
            s = s[:-3].strip()

    m = re.search(r"\{.*\}", s, re.S)
    if not m:
        return None
    try:
        obj = json.loads(m.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(obj, dict):
        return None

    primary = _normalize_action(obj.get("action") if isinstance(obj.get("action"), dict) else obj)
    if not primary:
        return None
    fallbacks = [f for f in (_normalize_action(x) for x in obj.get("fallbacks") or []) if f]
    return ActionSpec(goal=instruction, action=primary, fallbacks=fallbacks)
