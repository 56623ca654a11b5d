from orchestrator.config import resolve_url
import re

# ===============================================================
#  ACTIONS: Navigation & Input
# ===============================================================

MODAL_SELECTOR = "[role=dialog]:visible, .modal.show, .modal:visible"


async def action_goto(page, *, selector, base_url=None, timeout_ms=7000, **_):
    url = resolve_url(base_url, selector)
    await page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)


async def action_press(page, *, selector=None, value, timeout_ms=7000, **_):
    if selector:
        await page.locator(selector).press(str(value), timeout=timeout_ms)
    else:
        await page.keyboard.press(str(value))


# ===============================================================
#  CLICK (SMART)
# ===============================================================

async def _pick_visible_candidate(page, selector: str, timeout_ms: int):
    """
    First visible, enabled match: modal first, then the whole page.
    """
    half = max(500, int(timeout_ms * 0.5))
    modal = page.locator(MODAL_SELECTOR).first

    if await modal.count():
        cand = modal.locator(f"{selector} >> visible=true").filter(has_not=page.locator(":disabled")).first
        try:
            await cand.wait_for(state="visible", timeout=half)
            return cand
        except Exception:
            pass

    cand = page.locator(f"{selector} >> visible=true").filter(has_not=page.locator(":disabled")).first
    try:
        await cand.wait_for(state="visible", timeout=half)
        return cand
    except Exception:
        pass

    return None


async def _click_by_label(scope, label: str, timeout_ms: int) -> bool:
    pattern = re.compile(rf"\b{re.escape(label)}\b", re.I) if label else None
    for role in ("button", "link", "menuitem", "tab", "option"):
        cand = scope.get_by_role(role, name=pattern).first
        try:
            if await cand.count():
                await cand.click(timeout=timeout_ms)
                return True
        except Exception:
            pass
    cand = scope.get_by_text(label, exact=False).first
    try:
        if await cand.count():
            await cand.click(timeout=timeout_ms)
            return True
    except Exception:
        pass
    return False


async def action_click(page, *, selector=None, value=None, timeout_ms=7000, **_):
    """
    Smart click:
    - explicit selector -> first visible enabled match;
    - otherwise the visible label in value, by role then by text, modal first.
    """
    if selector:
        cand = await _pick_visible_candidate(page, selector, timeout_ms)
        if cand is not None:
            await cand.click(timeout=timeout_ms)
            return
        raise RuntimeError(f"Element not found for selector: {selector}")

    label = (value or "").strip()
    if not label:
        raise RuntimeError("click needs a selector or a label value")

    modal = page.locator(MODAL_SELECTOR).first
    if await modal.count() and await _click_by_label(modal, label, timeout_ms):
        return
    if await _click_by_label(page, label, timeout_ms):
        return

    raise RuntimeError(f"No clickable element found for label {label!r}")
