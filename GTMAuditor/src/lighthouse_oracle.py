#!/usr/bin/env python3
"""
Measurement oracle: Playwright-launched Chromium + Lighthouse boot-up audit

The browser is launched once per session with a remote debugging port and
Lighthouse attaches to that port for every measurement round. The raw
Lighthouse JSON is normalized into a RawScriptReport here so nothing
downstream ever looks at the loosely shaped report.
"""

import asyncio
import json
import socket
from typing import Any, Dict, List, Optional

from playwright.async_api import async_playwright, Browser, Playwright

from audit_errors import BrowserLaunchError, MeasurementError
from audit_models import RawScriptEntry, RawScriptReport
from logging_config import setup_logger

# Reused across runs for container reliability
CHROME_FLAGS = [
    '--headless=new',
    '--no-sandbox',
    '--no-zygote',
    '--disable-dev-shm-usage',
    '--disable-extensions',
    '--no-first-run',
    '--no-default-browser-check',
]

BOOTUP_AUDIT = 'bootup-time'


def _find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(('127.0.0.1', 0))
        return sock.getsockname()[1]


def _as_ms(value: Any) -> float:
    """Numeric Lighthouse field -> non-negative float, anything else -> 0"""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    return max(0.0, float(value))


def parse_bootup_report(url: str, lhr: Dict[str, Any]) -> RawScriptReport:
    """
    Normalize a Lighthouse result (lhr) into a RawScriptReport

    Raises:
        MeasurementError: when Lighthouse itself reported a runtime error
    """
    if not isinstance(lhr, dict):
        raise MeasurementError(f"Lighthouse returned an unexpected report for {url}")

    runtime_error = lhr.get('runtimeError')
    if isinstance(runtime_error, dict) and runtime_error.get('code'):
        message = runtime_error.get('message') or runtime_error['code']
        raise MeasurementError(f"Lighthouse runtime error for {url}: {message}")

    audit = (lhr.get('audits') or {}).get(BOOTUP_AUDIT) or {}
    items = (audit.get('details') or {}).get('items') or []

    entries = []
    for item in items:
        if not isinstance(item, dict) or not isinstance(item.get('url'), str):
            continue
        entries.append(RawScriptEntry(
            script_url=item['url'],
            # total: all main-thread CPU time attributed to the script
            total_cpu_time_ms=_as_ms(item.get('total')),
            # scripting: evaluation
            script_evaluation_ms=_as_ms(item.get('scripting')),
            parse_compile_ms=_as_ms(item.get('scriptParseCompile')),
        ))

    return RawScriptReport(url=url, entries=tuple(entries))


class BrowserSession:
    """
    One headless Chromium exposed on a debugging port

    Use as ``async with``; the browser and Playwright driver are shut down on
    every exit path, and only once.
    """

    def __init__(self, chrome_flags: Optional[List[str]] = None, debug_mode: bool = False):
        self.chrome_flags = list(chrome_flags or CHROME_FLAGS)
        self.logger = setup_logger('BrowserSession', debug_mode)
        self.port: Optional[int] = None
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def __aenter__(self) -> 'BrowserSession':
        self.port = _find_free_port()
        self.logger.debug(f"🚀 Launching Chromium on debugging port {self.port}")
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=self.chrome_flags + [f'--remote-debugging-port={self.port}'],
            )
        except asyncio.CancelledError:
            await self.close()
            raise
        except Exception as e:
            await self.close()
            raise BrowserLaunchError(f"Browser launch failed: {e}") from e
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        try:
            if browser is not None:
                await browser.close()
        finally:
            if playwright is not None:
                await playwright.stop()
                self.logger.debug("🧹 Browser session closed")


class LighthouseOracle:
    """Runs the Lighthouse boot-up time audit against a BrowserSession"""

    def __init__(self, lighthouse_bin: str = 'lighthouse', debug_mode: bool = False):
        self.lighthouse_bin = lighthouse_bin
        self.debug_mode = debug_mode
        self.logger = setup_logger('LighthouseOracle', debug_mode)

    def session(self) -> BrowserSession:
        return BrowserSession(debug_mode=self.debug_mode)

    def build_command(self, url: str, port: int) -> List[str]:
        return [
            self.lighthouse_bin,
            url,
            f'--port={port}',
            f'--only-audits={BOOTUP_AUDIT}',
            '--output=json',
            '--output-path=stdout',
            '--quiet',
        ]

    async def measure(self, session: BrowserSession, url: str) -> RawScriptReport:
        """
        Run one Lighthouse trace of url in the given session

        Raises:
            MeasurementError: Lighthouse missing, failed, or produced bad JSON
        """
        command = self.build_command(url, session.port)
        self.logger.debug(f"🔍 Lighthouse: {' '.join(command)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise MeasurementError(
                f"Lighthouse executable not found: {self.lighthouse_bin}"
            ) from e

        try:
            stdout, stderr = await process.communicate()
        except asyncio.CancelledError:
            # Cancelled by a round timeout - do not leave Lighthouse running
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        if process.returncode != 0:
            detail = stderr.decode('utf-8', errors='replace').strip().splitlines()
            reason = detail[-1] if detail else f"exit code {process.returncode}"
            raise MeasurementError(f"Lighthouse failed for {url}: {reason}")

        try:
            lhr = json.loads(stdout.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MeasurementError(f"Lighthouse produced unreadable output for {url}") from e

        report = parse_bootup_report(url, lhr)
        self.logger.debug(f" Lighthouse measured {len(report.entries)} scripts on {url}")
        return report
