# act_agent/perception.py
from __future__ import annotations
from typing import List
from playwright.async_api import Page
from act_agent.schemas import Observation, ElementMini

MODAL_SELECTOR = "[role=dialog]:visible, .modal.show, .modal:visible"


def _safe_text(s: str) -> str:
    s = (s or "").strip()
    return " ".join(s.split())


async def _build_selector_hint(el) -> str | None:
    try:
        el_id = await el.get_attribute("id")
        if el_id:
            return f"#{el_id}"
        name = await el.get_attribute("name")
        if name:
            return f"[name='{name}']"
        testid = await el.get_attribute("data-testid")
        if testid:
            return f"[data-testid='{testid}']"
    except Exception:
        pass
    return None


async def _mini(el, role: str, text: str | None) -> ElementMini:
    return ElementMini(
        role=role,
        text=text or None,
        id=await el.get_attribute("id"),
        name=await el.get_attribute("name"),
        aria_label=await el.get_attribute("aria-label"),
        data_testid=await el.get_attribute("data-testid"),
        selector_hint=await _build_selector_hint(el),
    )


async def _collect_buttons(page: Page, limit: int = 80) -> List[ElementMini]:
    btns = []
    loc = page.locator("button, [role=button], input[type=submit], a")
    count = min(await loc.count(), limit)
    for i in range(count):
        el = loc.nth(i)
        try:
            txt = _safe_text(await el.inner_text(timeout=300))
        except Exception:
            txt = ""
        try:
            btns.append(await _mini(el, "button", txt))
        except Exception:
            pass
    return btns


async def _collect_inputs(page: Page, limit: int = 100) -> List[ElementMini]:
    ins = []
    loc = page.locator("input, textarea, [role=textbox], select")
    count = min(await loc.count(), limit)
    for i in range(count):
        el = loc.nth(i)
        txt = None
        try:
            for attr in ("placeholder", "aria-label", "name", "id", "type"):
                txt = await el.get_attribute(attr)
                if txt:
                    break
        except Exception:
            txt = None
        try:
            ins.append(await _mini(el, "input", _safe_text(txt) if txt else None))
        except Exception:
            pass
    return ins


async def perceive(page: Page) -> Observation:
    """Reads the current page into a compact Observation."""
    try:
        title = await page.title()
    except Exception:
        title = None

    flags = {}
    try:
        flags["modal_open"] = await page.locator(MODAL_SELECTOR).count() > 0
    except Exception:
        flags["modal_open"] = False
    try:
        flags["has_password"] = await page.locator("input[type='password']").count() > 0
    except Exception:
        flags["has_password"] = False
    try:
        flags["error_banner"] = None
        error_el = page.locator("text=/error|invalid|failed|wrong/i").first
        if await error_el.count() > 0:
            flags["error_banner"] = _safe_text(await error_el.inner_text(timeout=200))
    except Exception:
        pass

    visible_texts = []
    try:
        all_text = await page.locator("body").inner_text(timeout=700)
        for t in all_text.splitlines():
            t = _safe_text(t)
            if 3 <= len(t) <= 150:
                visible_texts.append(t)
        visible_texts = visible_texts[:80]
    except Exception:
        pass

    return Observation(
        url=page.url,
        title=title,
        visible_texts=visible_texts,
        buttons=await _collect_buttons(page),
        inputs=await _collect_inputs(page),
        flags=flags,
    )
