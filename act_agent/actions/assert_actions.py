from playwright.async_api import expect
import re


async def action_assert_visible(page, *, selector, timeout_ms=7000, **_):
    loc = page.locator(selector).first
    try:
        await expect(loc).to_be_visible(timeout=timeout_ms)
    except AssertionError as e:
        raise AssertionError(f"Expected VISIBLE: {selector}. Error: {e}")


async def action_assert_text(page, *, selector, value, timeout_ms=7000, **_):
    """
    Exact text match (after whitespace normalisation).
    """
    loc = page.locator(selector).first
    try:
        await expect(loc).to_have_text(str(value), timeout=timeout_ms)
    except AssertionError as e:
        try:
            actual = await loc.inner_text(timeout=1000)
        except Exception:
            actual = "<unavailable>"
        raise AssertionError(
            f"Expected EXACT text.\n  selector: {selector}\n  expected: {value!r}\n  actual  : {actual!r}\n  error   : {e}"
        )


async def action_assert_contains(page, *, selector="body", value, timeout_ms=7000, **_):
    """
    Case-insensitive substring match.
    """
    loc = page.locator(selector).first
    try:
        await expect(loc).to_contain_text(re.compile(re.escape(str(value)), re.I), timeout=timeout_ms)
    except AssertionError as e:
        raise AssertionError(
            f"Expected text to CONTAIN substring.\n  selector: {selector}\n  contains: {value!r}\n  error   : {e}"
        )


async def action_assert_url(page, *, value, timeout_ms=7000, **_):
    """
    Current URL contains value.
    """
    try:
        await expect(page).to_have_url(re.compile(re.escape(str(value))), timeout=timeout_ms)
    except AssertionError as e:
        raise AssertionError(
            f"URL assertion failed (expected to CONTAIN {value!r}).\n  current: {page.url!r}\n  error  : {e}"
        )
