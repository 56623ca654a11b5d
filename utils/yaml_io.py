from __future__ import annotations
from pathlib import Path
from typing import Any
import yaml

def read_yaml(path: Path) -> Any:
    path = Path(path)
    with path.open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}
