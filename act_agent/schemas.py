# act_agent/schemas.py
from __future__ import annotations
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field


class ElementMini(BaseModel):
    """
    Minimal description of an interactive element, with a stable selector hint.
    """
    role: Optional[str] = None
    text: Optional[str] = None
    id: Optional[str] = None
    name: Optional[str] = None
    aria_label: Optional[str] = None
    data_testid: Optional[str] = None
    selector_hint: Optional[str] = None


class Observation(BaseModel):
    """
    Snapshot of the current page handed to the planner: texts, buttons,
    inputs and a few flags (modal/password/error banner).
    """
    url: str
    title: Optional[str] = None
    visible_texts: List[str] = Field(default_factory=list)
    buttons: List[ElementMini] = Field(default_factory=list)
    inputs: List[ElementMini] = Field(default_factory=list)
    flags: Dict[str, Any] = Field(default_factory=dict)


class ActionSpec(BaseModel):
    """
    One resolved action for an instruction, plus fallbacks tried in order:
    {"goal": "Click the 'Next' button", "action": {"type": "click", "value": "Next"}, "fallbacks": [...]}
    """
    goal: str
    action: Dict[str, Any] = Field(default_factory=dict)
    fallbacks: List[Dict[str, Any]] = Field(default_factory=list)

    def candidates(self) -> List[Dict[str, Any]]:
        return [a for a in [self.action, *self.fallbacks] if a and a.get("type")]
