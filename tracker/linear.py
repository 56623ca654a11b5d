from __future__ import annotations
import time, requests
from typing import Any, Dict, List, Optional

from orchestrator.exceptions import SetupError, TrackerError
from orchestrator.models import ScenarioSource

LINEAR_URL = "https://api.linear.app/graphql"
PAGE_SIZE = 50

ISSUE_FIELDS = "id identifier title description"

ISSUES_QUERY = f"""
query Issues($filter: IssueFilter, $first: Int, $after: String) {{
  issues(filter: $filter, first: $first, after: $after) {{
    nodes {{ {ISSUE_FIELDS} }}
    pageInfo {{ hasNextPage endCursor }}
  }}
}}
"""

PROJECTS_QUERY = """
query Projects($name: String!) {
  projects(filter: { name: { eq: $name } }) {
    nodes { id name }
  }
}
"""

ISSUE_QUERY = f"""
query Issue($id: String!) {{
  issue(id: $id) {{ {ISSUE_FIELDS} url }}
}}
"""


class LinearTracker:
    """Read-only access to scenario records stored as Linear issues."""

    def __init__(self, api_key: str, url: str = LINEAR_URL, *,
                 timeout_read: float = 30, retries: int = 3, backoff: float = 0.7):
        if not api_key:
            raise SetupError("LINEAR_API_KEY is not set")
        self.api_key = api_key
        self.url = url
        self.timeout_read = timeout_read
        self.retries = retries
        self.backoff = backoff

    def _post(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = {"query": query, "variables": variables or {}}
        headers = {"Content-Type": "application/json", "Authorization": self.api_key}
        last_err = None
        for attempt in range(1, self.retries + 1):
            try:
                r = requests.post(self.url, json=payload, headers=headers, timeout=(5, self.timeout_read))
                r.raise_for_status()
                data = r.json()
                break
            except requests.RequestException as e:
                last_err = e
                print(f"[Linear] POST attempt {attempt}/{self.retries} failed: {e}")
                if attempt < self.retries:
                    time.sleep(self.backoff * attempt)
        else:
            raise TrackerError(f"Linear API unreachable: {last_err}") from last_err

        if data.get("errors"):
            raise TrackerError(f"Linear API error: {data['errors']}")
        return data.get("data") or {}

    def _issues(self, issue_filter: Dict[str, Any]) -> List[ScenarioSource]:
        out: List[ScenarioSource] = []
        after = None
        while True:
            data = self._post(ISSUES_QUERY, {"filter": issue_filter, "first": PAGE_SIZE, "after": after})
            page = data.get("issues") or {}
            out.extend(ScenarioSource.from_node(n) for n in page.get("nodes") or [])
            info = page.get("pageInfo") or {}
            if not info.get("hasNextPage"):
                break
            after = info.get("endCursor")
        return out

    def issues_by_label(self, label: str) -> List[ScenarioSource]:
        return self._issues({"labels": {"name": {"eq": label}}})

    def project_id(self, name: str) -> str:
        data = self._post(PROJECTS_QUERY, {"name": name})
        for p in (data.get("projects") or {}).get("nodes") or []:
            if p.get("name") == name:
                return p["id"]
        raise SetupError(f"Project {name!r} not found.")

    def issues_by_project(self, name: str) -> List[ScenarioSource]:
        pid = self.project_id(name)
        return self._issues({"project": {"id": {"eq": pid}}})

    def issue_by_id(self, identifier: str) -> ScenarioSource:
        try:
            data = self._post(ISSUE_QUERY, {"id": identifier})
        except TrackerError as e:
            raise SetupError(f"Issue {identifier!r} not found in Linear: {e}") from e
        node = data.get("issue")
        if not node:
            raise SetupError(f"Issue {identifier!r} not found in Linear.")
        print(f"[Linear] ✅ Found issue: {node.get('identifier') or identifier}: {node.get('title')}")
        if node.get("url"):
            print(f"[Linear] 🔗 {node['url']}")
        return ScenarioSource.from_node(node)
