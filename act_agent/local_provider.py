# act_agent/local_provider.py
from __future__ import annotations
import re
from typing import List, Optional

from act_agent.schemas import ActionSpec, Observation

# -------- Helpers -------------------------------------------------------------

KEYWORD_RE = re.compile(r"^(?:(?:given|when|then|and)\s+)?(?:i\s+)?", re.I)

FILL_RES = [
    re.compile(r"^(?:enter|type|input|fill)\s+[\"'](?P<value>.+?)[\"']\s+(?:into|in|under|as)\s+(?:the\s+)?(?P<field>.+?)(?:\s+(?:field|box|input))?$", re.I),
    re.compile(r"^fill\s+in\s+(?:the\s+)?(?P<field>.+?)\s+(?:field\s+)?with\s+[\"']?(?P<value>.+?)[\"']?$", re.I),
    re.compile(r"^(?:enter|type|input)\s+(?:the\s+)?(?:code\s+)?(?P<value>\d{4,8})\s+(?:into|in)\s+(?:the\s+)?(?P<field>.+?)(?:\s+field)?$", re.I),
]
CLICK_QUOTED_RE = re.compile(r"\b(?:click|tap|press|select|open)\b(?:\s+on)?\s+(?:the\s+)?[\"'](?P<label>[^\"']+)[\"']", re.I)
CLICK_PLAIN_RE = re.compile(r"^(?:click|tap)(?:\s+on)?\s+(?:the\s+)?(?P<label>.+?)(?:\s+(?:button|link|option|icon|tab|menu))?$", re.I)
GOTO_RE = re.compile(r"\b(?:go to|navigate to|open)\s+(?P<url>https?://\S+|/\S*)", re.I)
WAIT_RE = re.compile(r"\bwait\s+(?:for\s+)?(?P<n>\d+(?:\.\d+)?)\s*(?P<unit>ms|milliseconds?|s|sec|seconds?)\b", re.I)
CHECK_RE = re.compile(r"\b(?:check|verify|confirm|see|should see|is visible|appears)\b.*?[\"'](?P<text>[^\"']+)[\"']", re.I)

FIELD_HINTS = {
    "email": ["input[type='email']", "input[name*='email' i]", "input[id*='email' i]"],
    "password": ["input[type='password']"],
    "user": ["input[name*='user' i]", "input[id*='user' i]", "input[type='email']"],
    "search": ["input[type='search']", "input[name*='search' i]"],
    "two-factor": ["input[autocomplete='one-time-code']", "input[name*='code' i]", "input[inputmode='numeric']"],
    "code": ["input[autocomplete='one-time-code']", "input[name*='code' i]", "input[inputmode='numeric']"],
}


def _norm(text: str | None) -> str:
    return (text or "").strip().lower()


def _strip_keyword(instruction: str) -> str:
    return KEYWORD_RE.sub("", instruction.strip()).strip()


def _field_selectors(field: str, obs: Optional[Observation]) -> List[str]:
    f = _norm(field)
    out: List[str] = []
    if obs:
        for el in obs.inputs:
            haystack = " ".join(_norm(x) for x in (el.text, el.name, el.aria_label, el.id) if x)
            if el.selector_hint and f and (f in haystack or any(w in haystack for w in f.split() if len(w) > 3)):
                out.append(el.selector_hint)
    for key, sels in FIELD_HINTS.items():
        if key in f:
            out += sels
    if f:
        out += [f"input[placeholder*='{field}' i]", f"input[aria-label*='{field}' i]", f"textarea[placeholder*='{field}' i]"]
    return list(dict.fromkeys(out))


# -------- Public API ----------------------------------------------------------

def suggest_action(instruction: str, obs: Optional[Observation] = None) -> Optional[ActionSpec]:
    """
    Rule-based resolution of a single instruction, used when the LLM is not
    reachable or returns nothing usable. None if no rule matches.
    """
    text = _strip_keyword(instruction)

    for rx in FILL_RES:
        m = rx.match(text)
        if m:
            sels = _field_selectors(m.group("field"), obs)
            if not sels:
                return None
            value = m.group("value")
            actions = [{"type": "fill", "selector": s, "value": value} for s in sels]
            return ActionSpec(goal=instruction, action=actions[0], fallbacks=actions[1:])

    m = GOTO_RE.search(text)
    if m:
        return ActionSpec(goal=instruction, action={"type": "goto", "selector": m.group("url")})

    m = WAIT_RE.search(text)
    if m:
        unit = m.group("unit").lower()
        value = f"{m.group('n')}ms" if unit.startswith("m") else float(m.group("n"))
        return ActionSpec(goal=instruction, action={"type": "wait", "value": value})

    m = CLICK_QUOTED_RE.search(text) or CLICK_PLAIN_RE.match(text)
    if m:
        label = m.group("label").strip()
        return ActionSpec(
            goal=instruction,
            action={"type": "click", "value": label},
            fallbacks=[{"type": "click", "selector": f"text={label}"}],
        )

    m = CHECK_RE.search(text)
    if m:
        return ActionSpec(goal=instruction,
                          action={"type": "assert_contains", "selector": "body", "value": m.group("text")})

    return None


def summarize_observation(obs: Observation) -> str:
    """Short one-line description of the page, for failure messages."""
    parts = [f"URL: {obs.url}"]
    if obs.title:
        parts.append(f"Title: {obs.title}")
    err = (obs.flags.get("error_banner") or "")[:120]
    if err:
        parts.append(f"Error: {err}")
    if obs.visible_texts:
        parts.append(f"Texts: {'; '.join(obs.visible_texts[:3])[:160]}")
    return " | ".join(parts)
