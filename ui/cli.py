import argparse
import asyncio
from pathlib import Path

from orchestrator.config import load_config
from orchestrator.controller import run
from orchestrator.exceptions import StepValidationError
from orchestrator.log import configure_logging

def _parse_viewport(s: str):
    s = str(s).lower().replace(" ", "")
    if "x" in s:
        w, h = s.split("x", 1)
        return int(w), int(h)
    raise argparse.ArgumentTypeError("viewport must be like 1366x900")

def build_argparser():
    ap = argparse.ArgumentParser(description="Run tracker scenarios against the app with an action agent")
    src = ap.add_argument_group("scenario source")
    src.add_argument("--label", dest="tracker_label", default=None, help="tracker label (default: stagehand_script)")
    src.add_argument("--project", dest="project_name", default=None, help="tracker project name")
    src.add_argument("--no-project", action="store_true", help="only run label-selected scenarios")
    src.add_argument("--issue", dest="target_issue_id", default=None, help="run a single issue, e.g. PLA-2806")
    src.add_argument("--overrides", type=Path, default=None, help="YAML file with curated step overrides")
    src.add_argument("--section-bounded", action="store_true", default=None,
                     help="only read steps from the tagged Acceptance Criteria section")

    br = ap.add_argument_group("browser")
    br.add_argument("--browser", default=None, choices=("chromium", "firefox", "webkit"))
    br.add_argument("--headful", action="store_true", default=None)
    br.add_argument("--viewport", type=_parse_viewport, default=None)
    br.add_argument("--slow-mo", dest="slow_mo", type=int, default=None)

    ex = ap.add_argument_group("execution")
    ex.add_argument("--step-timeout", dest="step_timeout_s", type=float, default=None)
    ex.add_argument("--stagger", dest="stagger_s", type=float, default=None)
    ex.add_argument("--split-threshold", dest="split_threshold", type=int, default=None)
    ex.add_argument("--reports-dir", dest="reports_dir", type=Path, default=None)
    ex.add_argument("--screenshots-dir", dest="screenshots_dir", type=Path, default=None)
    ex.add_argument("--ollama-model", dest="ollama_model", default=None)
    ex.add_argument("--no-llm", action="store_true", help="resolve instructions with local rules only")

    ap.add_argument("--log-level", default=None)
    ap.add_argument("--log-format", choices=("console", "json"), default=None)
    return ap

def main(argv=None):
    args = build_argparser().parse_args(argv)
    configure_logging(level=args.log_level,
                      json_output=None if args.log_format is None else args.log_format == "json")

    cli = {k: v for k, v in vars(args).items()
           if k not in ("overrides", "no_llm", "no_project", "log_level", "log_format")}
    if args.no_project:
        cli["project_name"] = ""
    try:
        config = load_config(overrides_path=args.overrides, **cli)
    except StepValidationError as e:
        print(f"❌ Invalid overrides file: {e}")
        raise SystemExit(2)

    code = asyncio.run(run(config, use_llm=not args.no_llm))
    raise SystemExit(code)

if __name__ == "__main__":
    main()
