"""
Pytest fixtures and fakes for the GTM auditor

FakeOracle stands in for Playwright + Lighthouse: each URL gets a queue of
per-round outcomes (a RawScriptReport to return or an exception to raise).
"""

import asyncio

from audit_models import RawScriptEntry, RawScriptReport


def gtm_url(container_id: str) -> str:
    return f"https://www.googletagmanager.com/gtm.js?id={container_id}"


def make_report(url: str, *entries) -> RawScriptReport:
    """entries are (script_url, total, scripting, parse) tuples"""
    return RawScriptReport(url=url, entries=tuple(RawScriptEntry(*entry) for entry in entries))


def gtm_report(url: str, **containers) -> RawScriptReport:
    """gtm_report(url, GTM_X=(total, scripting, parse)) -> report with one gtm.js per container"""
    entries = [(gtm_url(name.replace('_', '-')), *values) for name, values in containers.items()]
    entries.append(("https://example.com/app.js", 900, 700, 150))
    return make_report(url, *entries)


class FakeSession:
    def __init__(self, oracle):
        self.oracle = oracle
        self.entered = 0
        self.exited = 0

    async def __aenter__(self):
        self.entered += 1
        if self.oracle.launch_error is not None:
            raise self.oracle.launch_error
        self.oracle.open_sessions += 1
        self.oracle.max_open_sessions = max(self.oracle.max_open_sessions, self.oracle.open_sessions)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.exited += 1
        self.oracle.open_sessions -= 1
        if self.oracle.exit_error is not None:
            raise self.oracle.exit_error


class FakeOracle:
    def __init__(self, outcomes=None, launch_error=None, delay_s=0, exit_error=None):
        self.outcomes = {url: list(rounds) for url, rounds in (outcomes or {}).items()}
        self.launch_error = launch_error
        self.delay_s = delay_s
        self.exit_error = exit_error
        self.open_sessions = 0
        self.max_open_sessions = 0
        self.sessions = []
        self.calls = []

    def session(self):
        session = FakeSession(self)
        self.sessions.append(session)
        return session

    async def measure(self, session, url):
        assert session.entered == 1 and session.exited == 0, "measure called outside an open session"
        self.calls.append(url)
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        outcome = self.outcomes[url].pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome
