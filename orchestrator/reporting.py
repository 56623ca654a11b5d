# orchestrator/reporting.py
from __future__ import annotations
import time, html
from pathlib import Path
from typing import Dict, Any, Iterable, List, Mapping, Optional

from orchestrator.log import get_logger
from orchestrator.models import RunSummary, ScenarioResult, STATUSES, PASSED, FAILED, NOT_COMPLETED

# step journal states
PENDING = "pending"
RUNNING = "running"
SUCCEEDED = "succeeded"
RECOVERING = "recovering"


# ---------- step journal ----------

def record_step(records: List[Dict[str, Any]], ordinal: int, text: str) -> Dict[str, Any]:
    rec = {
        "ordinal": ordinal,
        "text": text,
        "started": None,
        "ended": None,
        "state": PENDING,
        "error": None,
    }
    records.append(rec)
    return rec

def start_step(rec: Dict[str, Any]) -> None:
    rec["started"] = time.time()
    rec["state"] = RUNNING

def finish_step(rec: Dict[str, Any], state: str = SUCCEEDED, error: Optional[str] = None) -> None:
    rec["ended"] = time.time()
    rec["state"] = state
    if error:
        rec["error"] = error


# ---------- status sink ----------

def _field_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "float"
    return "string"

def _field_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)

def coerce_fields(payload: Mapping[str, Any]) -> Dict[str, Dict[str, str]]:
    return {k: {"value": _field_value(v), "type": _field_type(v)} for k, v in payload.items()}

def build_record(payload: Mapping[str, Any]) -> Dict[str, Any]:
    status = payload.get("status")
    return {
        "category": "run",
        "message": f"Scenario status: {status}",
        "level": 1 if status == PASSED else 0,
        "fields": coerce_fields(payload),
    }


class StructlogSink:
    """Default sink: one structured log line per record."""

    def __init__(self, name: str = "scenario_runner.status"):
        self.logger = get_logger(name)

    def log(self, record: Dict[str, Any]) -> None:
        emit = self.logger.info if record.get("level") else self.logger.warning
        emit(record["message"], category=record["category"], fields=record["fields"])


class StatusReporter:
    """
    Best-effort: report() never raises. Returns True when the sink took the
    record, False when delivery failed (already warned about).
    """

    def __init__(self, sink=None):
        self.sink = sink or StructlogSink()

    def report(self, payload: Mapping[str, Any]) -> bool:
        try:
            self.sink.log(build_record(payload))
            return True
        except Exception as e:
            print(f"[WARN] reportStatus log failed: {e}")
            return False


# ---------- aggregation ----------

def aggregate(results: Iterable[ScenarioResult]) -> RunSummary:
    results = list(results)
    counts = {s: 0 for s in STATUSES}
    for r in results:
        counts[r.status] = counts.get(r.status, 0) + 1
    return RunSummary(counts=counts, results=results)

def run_payload(summary: RunSummary) -> Dict[str, Any]:
    return {
        "status": summary.status,
        "totalScenarios": summary.total,
        PASSED: summary.counts.get(PASSED, 0),
        FAILED: summary.counts.get(FAILED, 0),
        NOT_COMPLETED: summary.counts.get(NOT_COMPLETED, 0),
    }

def _format_line(r: ScenarioResult) -> str:
    line = f"- {r.identifier}: {r.title}"
    if r.failed_step:
        line += f" | step: {r.failed_step}"
    if r.error_message:
        line += f" | error: {r.error_message}"
    return line

def format_table(rows: List[List[str]], headers: List[str]) -> str:
    widths = [len(h) for h in headers]
    for row in rows:
        widths = [max(w, len(c)) for w, c in zip(widths, row)]
    sep = "+" + "+".join("-" * (w + 2) for w in widths) + "+"
    fmt = lambda cells: "| " + " | ".join(c.ljust(w) for c, w in zip(cells, widths)) + " |"
    out = [sep, fmt(headers), sep]
    out += [fmt(r) for r in rows]
    out.append(sep)
    return "\n".join(out)

def summary_lines(summary: RunSummary) -> List[str]:
    lines = ["========= Summary ========="]
    lines.append(format_table(
        [[r.identifier, r.title, r.status] for r in summary.results],
        ["Identifier", "Title", "Status"],
    ))
    lines.append(format_table(
        [[s, str(summary.counts.get(s, 0))] for s in STATUSES],
        ["Status", "Count"],
    ))
    for status, label in ((PASSED, "Passed"), (FAILED, "Failed"), (NOT_COMPLETED, "Not completed")):
        group = summary.by_status(status)
        if group:
            lines.append(f"\n{label}:")
            lines += [_format_line(r) for r in group]
    return lines

def print_summary(summary: RunSummary) -> None:
    print("\n" + "\n".join(summary_lines(summary)))


# ---------- summary files ----------

def _status_badge(s: str) -> str:
    color = {"passed":"#16a34a","failed":"#dc2626","not_completed":"#f59e0b","error":"#7c3aed",
             "succeeded":"#16a34a","recovering":"#f59e0b","running":"#2563eb"}.get(s, "#6b7280")
    return f'<span style="background:{color};color:#fff;border-radius:8px;padding:2px 8px;font-size:12px">{html.escape(s)}</span>'

def write_summary(summary: RunSummary, reports_dir: Path, started_ts: float, *,
                  errors: Optional[List[str]] = None,
                  journals: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> Dict[str, Path]:
    reports_dir = Path(reports_dir)
    reports_dir.mkdir(parents=True, exist_ok=True)
    errors = errors or []
    journals = journals or {}
    total_sec = time.time() - started_ts
    run_status = "error" if errors else summary.status

    # TXT
    txt_lines = [
        f"Status: {run_status}",
        f"Scenarios: {summary.total}",
        f"Duration: {total_sec:.2f}s",
        "",
    ] + summary_lines(summary)
    if errors:
        txt_lines += ["", "Errors:"] + [f"  {e}" for e in errors]
    txt_path = reports_dir / "run_summary.txt"
    txt_path.write_text("\n".join(txt_lines), encoding="utf-8")

    # HTML
    rows = []
    for r in summary.results:
        rows.append(
            "<tr>"
            f"<td><code>{html.escape(r.identifier)}</code></td>"
            f"<td>{html.escape(r.title)}</td>"
            f"<td>{_status_badge(r.status)}</td>"
            f"<td>{html.escape(r.failed_step or '')}</td>"
            f"<td>{html.escape(r.error_message or '')}</td>"
            "</tr>"
        )

    step_sections = []
    for ident, records in journals.items():
        srows = []
        for s in records:
            dur = ((s["ended"] or time.time()) - s["started"]) if s["started"] else 0.0
            srows.append(
                "<tr>"
                f"<td>{s['ordinal']}</td>"
                f"<td>{html.escape(s['text'])}</td>"
                f"<td>{dur:.2f}s</td>"
                f"<td>{_status_badge(s['state'])}</td>"
                f"<td>{html.escape(s.get('error') or '')}</td>"
                "</tr>"
            )
        step_sections.append(
            f"<h4>{html.escape(ident)}</h4><table><thead><tr><th>#</th><th>Step</th><th>Time</th>"
            f"<th>State</th><th>Error</th></tr></thead><tbody>{''.join(srows)}</tbody></table>"
        )

    err_html = "".join(f"<li>{html.escape(e)}</li>" for e in errors)
    counts_html = " ".join(f"{_status_badge(s)} {summary.counts.get(s, 0)}" for s in STATUSES)

    html_doc = f"""<!doctype html>
<html lang="en"><head>
<meta charset="utf-8"/>
<title>Scenario Run Summary</title>
<style>
 body{{font-family:Arial,Helvetica,sans-serif;margin:24px}}
 table{{border-collapse:collapse;width:100%;margin-bottom:16px}}
 th,td{{border:1px solid #e5e7eb;padding:8px;text-align:left}}
 th{{background:#f3f4f6}}
 code{{background:#f3f4f6;padding:1px 4px;border-radius:4px}}
 .meta div{{margin-bottom:4px}}
</style>
</head><body>
<h2>Scenario Run Summary</h2>
<div class="meta">
  <div><b>Status:</b> {_status_badge(run_status)}</div>
  <div><b>Scenarios:</b> {summary.total} &nbsp; {counts_html}</div>
  <div><b>Duration:</b> {total_sec:.2f}s</div>
</div>
{'<h3>Errors</h3><ul>' + err_html + '</ul>' if errors else ''}
<h3>Scenarios</h3>
<table>
  <thead><tr><th>Identifier</th><th>Title</th><th>Status</th><th>Failed step</th><th>Error</th></tr></thead>
  <tbody>
    {''.join(rows) if rows else '<tr><td colspan="5">No scenarios</td></tr>'}
  </tbody>
</table>
<h3>Steps</h3>
{''.join(step_sections) or '<p>No steps recorded</p>'}
</body></html>"""
    html_path = reports_dir / "run_summary.html"
    html_path.write_text(html_doc, encoding="utf-8")
    return {"txt": txt_path, "html": html_path}
