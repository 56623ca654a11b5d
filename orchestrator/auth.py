from __future__ import annotations
import asyncio

from orchestrator.config import RunnerConfig
from orchestrator.dispatch import act_with_timeout
from orchestrator.exceptions import AuthenticationError
from orchestrator.totp import generate_totp

CLEAR_STORAGE_JS = "() => { try { localStorage.clear(); sessionStorage.clear(); } catch (e) {} }"


class Authenticator:
    """
    Establishes an authenticated session on the chunk's current page.

    Attempt budget: 2 when called normally (first try + one forced retry),
    1 when already forced. Exhausting it raises AuthenticationError.
    """

    def __init__(self, config: RunnerConfig, session, agent):
        self.config = config
        self.session = session
        self.agent = agent

    def _sign_in_actions(self):
        return [
            "Click the 'Sign In' button",
            f'Enter "{self.config.user_name}" into the email field',
            "Click the 'Next' button",
            f'Enter "{self.config.password}" into the password field',
            "Click the 'Submit' button",
        ]

    async def _act(self, instruction: str) -> None:
        await act_with_timeout(self.agent, instruction, self.config.step_timeout_s)

    async def _attempt(self) -> None:
        page = self.session.page
        await self.session.context.clear_cookies()
        await page.goto(self.config.app_base_url, wait_until="load", timeout=self.config.login_timeout_ms)
        await page.wait_for_load_state("domcontentloaded")
        await page.evaluate(CLEAR_STORAGE_JS)

        for instruction in self._sign_in_actions():
            await self._act(instruction)

        if self.config.totp_secret:
            token = generate_totp(self.config.totp_secret)
            print(f"[login] 🔐 TOTP code generated ({len(token)} digits)")
            await self._act(f"Enter the code {token} into the two-factor authentication field")
            await self._act("Click the 'Submit' button to complete login")

        await asyncio.sleep(self.config.login_settle_s)

        markers = self.config.login_success_markers
        if markers:
            content = await page.content()
            if not any(m in content for m in markers):
                raise AuthenticationError("Expected home screen content not found after login")

    async def login(self, forced: bool = False) -> None:
        attempts = 1 if forced else 2
        last_err = None
        for attempt in range(attempts):
            retry = forced or attempt > 0
            print("[login] 🔁 Re-logging..." if retry else "[login] 🔐 Logging in...")
            try:
                await self._attempt()
                print("[login] ✅ Logged in successfully.")
                return
            except Exception as e:
                last_err = e
                print(f"[login] ⚠️ Login attempt {attempt + 1}/{attempts} failed: {e}")
        raise AuthenticationError(f"Login failed after {attempts} attempt(s): {last_err}") from last_err
