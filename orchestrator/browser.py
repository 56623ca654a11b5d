from __future__ import annotations
from typing import Optional, Sequence, Dict, Any
from playwright.async_api import async_playwright, Playwright, Browser, BrowserContext, Page

from orchestrator.config import RunnerConfig

def _normalize_viewport(viewport: Optional[Sequence[int]]) -> Optional[Dict[str, int]]:
    if not viewport:
        return None
    try:
        w, h = int(viewport[0]), int(viewport[1])
        if w > 0 and h > 0:
            return {"width": w, "height": h}
    except Exception:
        pass
    return None

def _browser_ctor(p: Playwright, name: str):
    name = (name or "chromium").strip().lower()
    if name in ("chromium", "chrome"): return p.chromium
    if name in ("firefox", "ff"):       return p.firefox
    if name in ("webkit", "safari"):    return p.webkit
    return p.chromium


class BrowserSession:
    """
    One chunk's browser. `page` and `context` are swapped by reopen() when
    recovery replaces a dead page.
    """

    def __init__(self, playwright: Playwright, browser: Browser, context: BrowserContext, page: Page,
                 *, context_kwargs: Optional[Dict[str, Any]] = None, timeout_ms: Optional[int] = None):
        self.playwright = playwright
        self.browser = browser
        self.context = context
        self.page = page
        self._context_kwargs = dict(context_kwargs or {})
        self._timeout_ms = timeout_ms

    async def _new_page(self) -> None:
        self.context = await self.browser.new_context(**self._context_kwargs)
        self.page = await self.context.new_page()
        if self._timeout_ms and int(self._timeout_ms) > 0:
            self.page.set_default_timeout(int(self._timeout_ms))
            self.page.set_default_navigation_timeout(int(self._timeout_ms))

    async def reopen(self) -> Page:
        old = self.context
        await self._new_page()
        try:
            await old.close()
        except Exception:
            pass
        return self.page

    async def close(self) -> None:
        try:
            await self.context.close()
        except Exception:
            pass
        finally:
            try:
                await self.browser.close()
            finally:
                try:
                    await self.playwright.stop()
                except Exception:
                    pass


async def open_browser(
    browser_name: str,
    headful: bool,
    *,
    viewport: Optional[Sequence[int]] = None,
    user_agent: Optional[str] = None,
    timeout_ms: Optional[int] = None,
    slow_mo: int = 0,
    proxy: Optional[Dict[str, str]] = None,   # {"server": "http://host:port", "username": "...", "password": "..."}
    extra_context_options: Optional[Dict[str, Any]] = None,
) -> BrowserSession:
    p = await async_playwright().start()
    browser_type = _browser_ctor(p, browser_name)

    launch_kwargs: Dict[str, Any] = {"headless": not bool(headful), "args": ["--disable-gpu", "--no-sandbox"]}
    if browser_type is not p.chromium:
        launch_kwargs.pop("args")
    if slow_mo and int(slow_mo) > 0:
        launch_kwargs["slow_mo"] = int(slow_mo)
    if proxy:
        launch_kwargs["proxy"] = proxy

    browser: Browser = await browser_type.launch(**launch_kwargs)

    vp = _normalize_viewport(viewport)
    context_kwargs: Dict[str, Any] = {"accept_downloads": True}
    if vp:
        context_kwargs["viewport"] = vp
    if user_agent:
        context_kwargs["user_agent"] = str(user_agent)
    if extra_context_options:
        context_kwargs.update(dict(extra_context_options))

    session = BrowserSession(p, browser, None, None, context_kwargs=context_kwargs, timeout_ms=timeout_ms)
    await session._new_page()
    return session

async def open_session(config: RunnerConfig) -> BrowserSession:
    return await open_browser(
        config.browser,
        config.headful,
        viewport=config.viewport,
        user_agent=config.user_agent,
        timeout_ms=config.action_timeout_ms,
        slow_mo=config.slow_mo,
        proxy=config.proxy,
    )
