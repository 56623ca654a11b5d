import binascii
import time
from unittest.mock import AsyncMock, MagicMock

import pyotp
import pytest

from orchestrator.auth import Authenticator
from orchestrator.exceptions import AuthenticationError, ChunkAbortedError, SessionClosedError
from orchestrator.recovery import SessionRecovery, is_fatal_session_error
from orchestrator.totp import generate_totp

from tests.conftest import FakeAgent, FakePage, FakeSession

RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"

SIGN_IN = [
    "Click the 'Sign In' button",
    'Enter "qa@example.test" into the email field',
    "Click the 'Next' button",
    'Enter "s3cret" into the password field',
    "Click the 'Submit' button",
]


# ---------- totp ----------

@pytest.mark.parametrize("at, digits, expected", [
    (59, 8, "94287082"),
    (1111111109, 8, "07081804"),
    (1234567890, 8, "89005924"),
    (59, 6, "287082"),
])
def test_totp_rfc6238_vectors(at, digits, expected):
    assert generate_totp(RFC_SECRET, digits=digits, at=at) == expected


def test_totp_tolerates_spaces_and_lowercase():
    assert generate_totp("gezd gnbv gy3t qojq gezd gnbv gy3t qojq", at=59) == "287082"


def test_totp_rejects_bad_secret():
    with pytest.raises(AuthenticationError):
        generate_totp("not base32!", at=59)


# ---------- login ----------

@pytest.mark.asyncio
async def test_login_runs_sign_in_sequence(make_config):
    session, agent = FakeSession(), FakeAgent()
    await Authenticator(make_config(), session, agent).login()

    assert agent.calls == SIGN_IN
    session.context.clear_cookies.assert_awaited_once()
    session.page.goto.assert_awaited_once()
    assert session.page.goto.await_args.args[0] == "https://app.example.test"


@pytest.mark.asyncio
async def test_login_with_totp_enters_code(make_config):
    session, agent = FakeSession(), FakeAgent()
    await Authenticator(make_config(totp_secret=RFC_SECRET), session, agent).login()

    assert agent.calls[:5] == SIGN_IN
    assert agent.calls[5].startswith("Enter the code ")
    assert agent.calls[5].split()[3].isdigit() and len(agent.calls[5].split()[3]) == 6
    assert agent.calls[6] == "Click the 'Submit' button to complete login"


@pytest.mark.asyncio
async def test_unforced_login_retries_once(make_config):
    session = FakeSession()
    agent = FakeAgent(fail_once={"Click the 'Next' button"})
    await Authenticator(make_config(), session, agent).login()

    assert session.page.goto.await_count == 2
    assert agent.calls.count("Click the 'Sign In' button") == 2


@pytest.mark.asyncio
async def test_unforced_login_gives_up_after_two_attempts(make_config):
    session = FakeSession()
    agent = FakeAgent(failures={"Click the 'Sign In' button": RuntimeError("no button")})
    with pytest.raises(AuthenticationError, match="after 2 attempt"):
        await Authenticator(make_config(), session, agent).login()
    assert session.page.goto.await_count == 2


@pytest.mark.asyncio
async def test_forced_login_does_not_retry(make_config):
    session = FakeSession()
    agent = FakeAgent(fail_once={"Click the 'Sign In' button"})
    with pytest.raises(AuthenticationError, match="after 1 attempt"):
        await Authenticator(make_config(), session, agent).login(forced=True)
    assert session.page.goto.await_count == 1


@pytest.mark.asyncio
async def test_login_checks_success_markers(make_config):
    session = FakeSession(FakePage(content="<h1>Sign in</h1>"))
    config = make_config(login_success_markers=("Dashboard",))
    with pytest.raises(AuthenticationError, match="home screen"):
        await Authenticator(config, session, FakeAgent()).login(forced=True)

    session.page.html = "<nav>Dashboard</nav>"
    await Authenticator(config, session, FakeAgent()).login(forced=True)


# ---------- recovery ----------

@pytest.mark.parametrize("exc, fatal", [
    (SessionClosedError("gone"), True),
    (RuntimeError("Target page, context or browser has been closed"), True),
    (RuntimeError("Protocol error: Target closed."), True),
    (RuntimeError("cdpSession.send: Session closed"), True),
    (RuntimeError("element not found"), False),
])
def test_fatal_session_errors(exc, fatal):
    assert is_fatal_session_error(exc) is fatal


@pytest.mark.asyncio
async def test_recovery_reopens_and_forces_login():
    session, agent = FakeSession(), FakeAgent()
    auth = MagicMock(login=AsyncMock())
    recovery = SessionRecovery(session, agent, auth)

    await recovery.recover()

    assert session.reopened == 1
    assert agent.page is session.page
    auth.login.assert_awaited_once_with(forced=True)
    assert recovery.recoveries == 1


@pytest.mark.asyncio
async def test_recovery_failure_aborts_chunk():
    auth = MagicMock(login=AsyncMock(side_effect=AuthenticationError("Login failed after 1 attempt(s)")))
    recovery = SessionRecovery(FakeSession(), FakeAgent(), auth)
    with pytest.raises(ChunkAbortedError, match="Session recovery failed"):
        await recovery.recover()
    assert recovery.recoveries == 0


def test_totp_now_matches_pyotp():
    assert generate_totp(RFC_SECRET) in {
        pyotp.TOTP(RFC_SECRET).now(),
        pyotp.TOTP(RFC_SECRET).at(int(time.time()) - 1),
    }


def test_totp_bad_secret_keeps_the_decoder_error():
    with pytest.raises(AuthenticationError) as exc:
        generate_totp("not base32!")
    assert isinstance(exc.value.__cause__, binascii.Error)
