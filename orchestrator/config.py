from __future__ import annotations
import os, random, string
from pathlib import Path
from typing import Optional, Any, Dict, FrozenSet, Mapping, Sequence, Tuple
from pydantic import BaseModel, ConfigDict, Field

from orchestrator.schema import validate_overrides
from utils.yaml_io import read_yaml

DEFAULT_UPLOAD_URL = (
    "https://raw.githubusercontent.com/dhanush2003sk/Protest_PlannerPal_Stagehand_Automation/main/audio.mp3"
)


class RunnerConfig(BaseModel):
    """
    Immutable run configuration. Built once by load_config() and handed to
    every component; nothing reads os.environ after that.
    """
    model_config = ConfigDict(frozen=True)

    # application + credentials
    app_base_url: str = ""
    user_name: str = ""
    password: str = ""
    totp_secret: Optional[str] = None
    login_success_markers: Tuple[str, ...] = ()

    # tracker
    linear_api_key: str = ""
    linear_api_url: str = "https://api.linear.app/graphql"
    tracker_label: str = "stagehand_script"
    project_name: Optional[str] = "Regression Pack"
    target_issue_id: Optional[str] = None

    # browser
    browser: str = "chromium"
    headful: bool = False
    viewport: Optional[Tuple[int, int]] = (1366, 900)
    user_agent: Optional[str] = None
    slow_mo: int = 0
    proxy: Optional[Dict[str, str]] = None

    # agent
    ollama_host: str = "http://localhost:11434"
    ollama_model: str = "llama3"
    action_timeout_ms: int = 7000

    # extraction
    section_bounded: bool = False
    section_tag: str = "#Stagehand"
    overrides: Dict[str, Tuple[str, ...]] = Field(default_factory=dict)
    reauthenticate_after: FrozenSet[str] = frozenset()
    variables: Dict[str, str] = Field(default_factory=dict)

    # execution
    step_timeout_s: float = 20.0
    idle_tag: str = "#soloadviser"
    idle_wait_s: float = 4.0
    poll_interval_s: float = 5.0
    poll_ceiling_s: float = 240.0
    upload_asset_url: str = DEFAULT_UPLOAD_URL
    upload_cache_path: Path = Path("audio.mp3")
    upload_follow_on_steps: int = 2
    media_check: bool = False

    # auth
    login_timeout_ms: int = 45000
    login_settle_s: float = 4.0

    # scheduling
    stagger_s: float = 30.0
    split_threshold: int = 6

    # output
    reports_dir: Path = Path("reports")
    screenshots_dir: Path = Path("screenshots")

    def override_for(self, identifier: str) -> Tuple[str, ...]:
        return tuple(self.overrides.get(identifier) or ())

    def needs_reauth_after(self, identifier: str) -> bool:
        return identifier in self.reauthenticate_after


def _parse_viewport(v) -> Optional[Sequence[int]]:
    if not v: return None
    if isinstance(v, (list, tuple)) and len(v) == 2: return (int(v[0]), int(v[1]))
    if isinstance(v, str):
        parts = [p.strip() for p in v.lower().replace("×", "x").split("x")]
        if len(parts) == 2 and parts[0].isdigit() and parts[1].isdigit():
            return (int(parts[0]), int(parts[1]))
    return None

def _rand_token(n: int = 6) -> str:
    return "".join(random.choice(string.ascii_lowercase + string.digits) for _ in range(n))

def _flag(v: Optional[str], default: bool = False) -> bool:
    if v is None or v == "": return default
    return v.strip().lower() in ("1", "true", "yes", "on")

def _csv(v: Optional[str]) -> Tuple[str, ...]:
    return tuple(p.strip() for p in (v or "").split(",") if p.strip())

def load_overrides(path: Optional[Path]) -> Tuple[Dict[str, Tuple[str, ...]], FrozenSet[str]]:
    """
    Reads the step overrides file. Missing path -> empty table.
    """
    if not path:
        return {}, frozenset()
    data = read_yaml(Path(path))
    validate_overrides(data)
    table: Dict[str, Tuple[str, ...]] = {}
    for ident, entry in (data.get("overrides") or {}).items():
        steps = entry.get("steps") if isinstance(entry, dict) else entry
        table[str(ident)] = tuple(str(s) for s in (steps or []))
    reauth = frozenset(str(i) for i in (data.get("reauthenticate_after") or []))
    return table, reauth

def load_config(env: Mapping[str, str] = os.environ,
                overrides_path: Optional[Path] = None,
                **cli: Any) -> RunnerConfig:
    """
    Env first, then explicit CLI values (None means "not given").
    """
    overrides_path = overrides_path or (Path(env["STEP_OVERRIDES"]) if env.get("STEP_OVERRIDES") else None)
    overrides, reauth = load_overrides(overrides_path)
    reauth = reauth | frozenset(_csv(env.get("REAUTH_AFTER")))

    user_name = env.get("USER_NAME", "")
    variables = {k[len("VAR_"):]: v for k, v in env.items() if k.startswith("VAR_")}
    variables.setdefault("USER_NAME", user_name)
    # ${RAND} by default, useful for unique names
    variables.setdefault("RAND", _rand_token())

    proxy = None
    if env.get("PROXY_SERVER"):
        proxy = {"server": env["PROXY_SERVER"]}
        if env.get("PROXY_USERNAME"): proxy["username"] = env["PROXY_USERNAME"]
        if env.get("PROXY_PASSWORD"): proxy["password"] = env["PROXY_PASSWORD"]

    opts: Dict[str, Any] = {
        "app_base_url": env.get("APP_BASE_URL", ""),
        "user_name": user_name,
        "password": env.get("PASSWORD", ""),
        "totp_secret": env.get("TOTP_SECRET") or None,
        "login_success_markers": _csv(env.get("LOGIN_SUCCESS_MARKERS")),
        "linear_api_key": env.get("LINEAR_API_KEY", ""),
        "linear_api_url": env.get("LINEAR_API_URL", "https://api.linear.app/graphql"),
        "tracker_label": env.get("TRACKER_LABEL", "stagehand_script"),
        "project_name": env.get("LINEAR_PROJECT_NAME", "Regression Pack") or None,
        "target_issue_id": env.get("TARGET_ISSUE_ID") or None,
        "browser": str(env.get("BROWSER", "chromium")).lower(),
        "headful": _flag(env.get("HEADFUL")),
        "viewport": _parse_viewport(env.get("VIEWPORT", "1366x900")),
        "user_agent": env.get("USER_AGENT"),
        "slow_mo": int(env.get("SLOW_MO", 0)),
        "proxy": proxy,
        "ollama_host": env.get("OLLAMA_HOST", "http://localhost:11434"),
        "ollama_model": env.get("OLLAMA_MODEL", "llama3"),
        "action_timeout_ms": int(env.get("TIMEOUT_MS", 7000)),
        "section_bounded": _flag(env.get("SECTION_BOUNDED")),
        "section_tag": env.get("SECTION_TAG", "#Stagehand"),
        "overrides": overrides,
        "reauthenticate_after": reauth,
        "variables": variables,
        "step_timeout_s": float(env.get("STEP_TIMEOUT_S", 20)),
        "idle_tag": env.get("IDLE_TAG", "#soloadviser"),
        "idle_wait_s": float(env.get("IDLE_WAIT_S", 4)),
        "poll_interval_s": float(env.get("POLL_INTERVAL_S", 5)),
        "poll_ceiling_s": float(env.get("POLL_CEILING_S", 240)),
        "upload_asset_url": env.get("UPLOAD_ASSET_URL", DEFAULT_UPLOAD_URL),
        "upload_cache_path": Path(env.get("UPLOAD_CACHE_PATH", "audio.mp3")),
        "upload_follow_on_steps": min(3, max(2, int(env.get("UPLOAD_FOLLOW_ON_STEPS", 2)))),
        "media_check": _flag(env.get("MEDIA_CHECK")),
        "login_timeout_ms": int(env.get("LOGIN_TIMEOUT_MS", 45000)),
        "login_settle_s": float(env.get("LOGIN_SETTLE_S", 4)),
        "stagger_s": float(env.get("STAGGER_S", 30)),
        "split_threshold": int(env.get("SPLIT_THRESHOLD", 6)),
        "reports_dir": Path(env.get("REPORTS_DIR", "reports")),
        "screenshots_dir": Path(env.get("SCREENSHOTS_DIR", "screenshots")),
    }
    opts.update({k: v for k, v in cli.items() if v is not None})
    return RunnerConfig(**opts)

def resolve_url(base_url: Optional[str], sel: str) -> str:
    if not sel: return ""
    if sel.startswith("http://") or sel.startswith("https://"):
        return sel
    if base_url:
        if sel.startswith("/"): return base_url.rstrip("/") + sel
        return base_url.rstrip("/") + "/" + sel.lstrip("/")
    return sel

def substitute_vars(value: Any, variables: dict):
    if not isinstance(value, str): return value
    out = value
    for k, v in (variables or {}).items():
        out = out.replace(f"${{{k}}}", str(v))
    return out
