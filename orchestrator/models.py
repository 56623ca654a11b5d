# orchestrator/models.py
from __future__ import annotations
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field

PASSED = "passed"
FAILED = "failed"
NOT_COMPLETED = "not_completed"
STATUSES = (PASSED, FAILED, NOT_COMPLETED)

ScenarioStatus = Literal["passed", "failed", "not_completed"]


class ScenarioSource(BaseModel):
    """
    Scenario as fetched from the tracker. Read-only for the orchestrator.
    """
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    identifier: str
    title: str = ""
    description: str = ""

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> "ScenarioSource":
        return cls(
            id=node.get("id"),
            identifier=node.get("identifier") or node.get("id") or "",
            title=node.get("title") or "",
            description=node.get("description") or "",
        )


class Step(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    ordinal: int


class ScenarioResult(BaseModel):
    identifier: str
    title: str = ""
    status: ScenarioStatus
    failed_step: Optional[str] = None
    error_message: Optional[str] = None


class SessionChunk(BaseModel):
    session_id: str
    scenarios: List[ScenarioSource] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.scenarios)


class RunSummary(BaseModel):
    """
    Per-status counts plus every result in run order. Built once at run end.
    """
    model_config = ConfigDict(frozen=True)

    counts: Dict[str, int] = Field(default_factory=dict)
    results: List[ScenarioResult] = Field(default_factory=list)

    @property
    def status(self) -> str:
        return FAILED if self.counts.get(FAILED, 0) > 0 else PASSED

    @property
    def total(self) -> int:
        return len(self.results)

    def by_status(self, status: str) -> List[ScenarioResult]:
        return [r for r in self.results if r.status == status]
