from __future__ import annotations
import re
from typing import List, Optional

from orchestrator.config import RunnerConfig, substitute_vars
from orchestrator.models import ScenarioSource, Step

# optional bullet, then a Gherkin keyword
STEP_RE = re.compile(r"^(?:[-•·*]\s*)?(Given|When|Then|And)\s+", re.I)


def _section_markers(tag: str):
    opening = re.compile(rf"^Acceptance Criteria\s*\(\s*{re.escape(tag)}\s*\)", re.I)
    closing = re.compile(rf"^Acceptance Criteria(?!\s*\(\s*{re.escape(tag)}\s*\))", re.I)
    return opening, closing


def _match_step(line: str) -> Optional[str]:
    m = STEP_RE.match(line)
    if not m:
        return None
    text = line[m.end():].strip()
    return text or None


def extract(description: str, identifier: str = "", *,
            section_bounded: bool = False, section_tag: str = "#Stagehand") -> List[Step]:
    """
    Turns a scenario description into ordered steps.

    Default mode keeps every bullet/keyword line. Bounded mode only reads the
    first "Acceptance Criteria (<tag>)" section, up to the next untagged
    "Acceptance Criteria" heading. An empty list means "no valid steps".
    """
    texts: List[str] = []
    opening, closing = _section_markers(section_tag)
    collecting = not section_bounded
    seen_section = False

    for raw in (description or "").splitlines():
        line = raw.strip()
        if section_bounded:
            if opening.match(line):
                if seen_section:
                    break
                collecting, seen_section = True, True
                continue
            if closing.match(line):
                if collecting:
                    break
                continue
        if not collecting:
            continue
        text = _match_step(line)
        if text:
            texts.append(text)

    return [Step(text=t, ordinal=i) for i, t in enumerate(texts, start=1)]


class StepExtractor:
    """Extraction plus override precedence and ${VAR} substitution."""

    def __init__(self, config: RunnerConfig):
        self.config = config

    def resolve(self, scenario: ScenarioSource) -> List[Step]:
        extracted = extract(
            scenario.description, scenario.identifier,
            section_bounded=self.config.section_bounded,
            section_tag=self.config.section_tag,
        )
        override = self.config.override_for(scenario.identifier)
        if override:
            print(f"[extract] {scenario.identifier}: using {len(override)} override step(s) "
                  f"(discarding {len(extracted)} extracted)")
            texts = list(override)
        else:
            print(f"[extract] {scenario.identifier}: extracted {len(extracted)} step(s)")
            texts = [s.text for s in extracted]

        variables = self.config.variables
        return [Step(text=substitute_vars(t, variables), ordinal=i) for i, t in enumerate(texts, start=1)]
