from playwright.async_api import TimeoutError as PWTimeoutError
import asyncio

from act_agent.actions.browser_actions import _pick_visible_candidate


async def action_fill(page, *, selector, value, timeout_ms=7000, **_):
    """
    Fills a field. Picks the visible, enabled match (modal first) and falls
    back to typing, then to a direct value set for custom inputs.
    """
    target = await _pick_visible_candidate(page, selector, timeout_ms)
    if target is None:
        raise RuntimeError(f"Element not found for selector: {selector}")
    try:
        await target.fill(str(value), timeout=timeout_ms)
        return
    except PWTimeoutError:
        await target.click(timeout=min(1000, timeout_ms))
        await page.keyboard.type(str(value), delay=10)
    except Exception:
        await target.evaluate(
            "(el, v) => { el.value = v; el.dispatchEvent(new Event('input', {bubbles:true})); }", str(value)
        )


async def action_wait_for_selector(page, *, selector, value="visible", timeout_ms=7000, **_):
    """
    value: one of 'visible' | 'attached' | 'hidden' | 'detached'
    """
    state = str(value).strip().lower()
    if state not in ("visible", "attached", "hidden", "detached"):
        state = "visible"
    await page.locator(selector).first.wait_for(state=state, timeout=timeout_ms)


async def action_select_option(page, *, selector, value, timeout_ms=7000, **_):
    """
    Picks an <option> by value, then by visible label.
    """
    try:
        dropdown = page.locator(selector)
        await dropdown.wait_for(state="visible", timeout=timeout_ms)
        try:
            await dropdown.select_option(value=value)
        except Exception:
            await dropdown.select_option(label=value)
    except PWTimeoutError:
        raise AssertionError(f"Timeout waiting for select element: {selector}")
    except Exception as e:
        raise AssertionError(f"Failed to select option {value!r} for {selector}: {e}")


def _parse_wait_value(value) -> float:
    if value is None:
        return 1.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        v = value.strip().lower()
        if v.endswith("ms"):
            return float(v[:-2]) / 1000.0
        return float(v)
    raise ValueError(f"Invalid value for wait: {value!r}")


async def action_wait(page, *, value=None, **_):
    """
    Explicit pause. value: seconds (number) or a string like '500ms'.
    """
    delay_s = _parse_wait_value(value)
    print(f"[wait] ⏳ Waiting {delay_s:.2f} seconds...")
    await asyncio.sleep(delay_s)
