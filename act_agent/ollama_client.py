from __future__ import annotations
import time, requests
from typing import Optional

DEFAULT_HOST = "http://localhost:11434"
DEFAULT_MODEL = "llama3"

def _healthcheck(host: str, timeout: float = 3.0) -> bool:
    try:
        r = requests.get(f"{host}/api/tags", timeout=timeout)
        r.raise_for_status()
        return True
    except requests.RequestException as e:
        print(f"[Ollama] healthcheck failed: {e}")
        return False

def _post_json(url: str, payload: dict, *, timeout_connect=5, timeout_read=30, retries=3, backoff=0.7):
    last_err = None
    for attempt in range(1, retries + 1):
        try:
            # (connect, read)
            r = requests.post(url, json=payload, timeout=(timeout_connect, timeout_read))
            r.raise_for_status()
            return r.json()
        except requests.RequestException as e:
            last_err = e
            print(f"[Ollama] POST attempt {attempt}/{retries} failed: {e}")
            if attempt < retries:
                time.sleep(backoff * attempt)
    raise last_err

def chat_simple(prompt: str, *, host: str = DEFAULT_HOST, model: str = DEFAULT_MODEL,
                temperature: float = 0.0, timeout: int = 15, retries: int = 1) -> Optional[str]:
    """
    One /api/generate round-trip. Returns None when the server is down or
    the call fails; callers fall back to the local rule-based provider.
    """
    if not _healthcheck(host):
        print(f"[Ollama] server not reachable at {host}")
        return None

    payload = {
        "model": model,
        "prompt": prompt,
        "options": {"temperature": temperature},
        "format": "json",
        "stream": False,
    }
    try:
        data = _post_json(f"{host}/api/generate", payload, timeout_connect=5, timeout_read=timeout, retries=retries)
        return data.get("response")
    except requests.RequestException as e:
        print(f"[Ollama] generate failed: {e}")
        return None
