# orchestrator/schema.py
from __future__ import annotations
from typing import Any, Dict

from orchestrator.exceptions import StepValidationError

def _require_str_list(v: Any, msg: str):
    if not isinstance(v, list) or not all(isinstance(s, str) and s.strip() for s in v):
        raise StepValidationError(msg)

def validate_overrides(doc: Dict[str, Any]) -> None:
    """
    overrides:
      PLA-2630:
        title: ...        # optional, informational
        steps: [...]      # or a bare list
    reauthenticate_after: [PLA-2705]
    """
    if not isinstance(doc, dict):
        raise StepValidationError("Overrides file must be a mapping")

    table = doc.get("overrides") or {}
    if not isinstance(table, dict):
        raise StepValidationError("'overrides' must be a mapping of identifier -> steps")

    for ident, entry in table.items():
        if isinstance(entry, dict):
            if "steps" not in entry:
                raise StepValidationError(f"Override {ident!r} missing 'steps'")
            _require_str_list(entry["steps"], f"Override {ident!r} 'steps' must be a list of non-empty strings")
        else:
            _require_str_list(entry, f"Override {ident!r} must be a list of non-empty strings")

    reauth = doc.get("reauthenticate_after")
    if reauth is not None:
        _require_str_list(reauth, "'reauthenticate_after' must be a list of identifiers")
