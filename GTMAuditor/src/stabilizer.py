#!/usr/bin/env python3
"""
Multi-run stabilizer
Measures one URL several times in a single browser session and averages the
GTM container metrics per container ID
"""

import asyncio
from typing import Any, Awaitable, List

from audit_errors import AuditError, BrowserLaunchError, MeasurementError, MeasurementTimeoutError
from audit_models import ContainerMetric
from averaging import mean_by_key
from gtm_extractor import extract_gtm_metrics
from logging_config import setup_logger

METRIC_FIELDS = ('total_cpu_time_ms', 'script_evaluation_ms', 'script_parse_time_ms')


class MultiRunStabilizer:
    """
    Repeats oracle measurement + GTM extraction run_count times per URL

    The oracle must provide ``session()`` (an async context manager) and
    ``measure(session, url)`` returning a RawScriptReport.

    With require_all_runs=True any failed round fails the URL. With False,
    failed rounds are skipped and the URL fails only when none succeed.
    """

    def __init__(self, oracle, run_count: int = 3, require_all_runs: bool = True,
                 round_timeout_s: float = 60, session_timeout_s: float = 30,
                 debug_mode: bool = False):
        if run_count < 1:
            raise ValueError(f"run_count must be at least 1, got {run_count}")
        self.oracle = oracle
        self.run_count = run_count
        self.require_all_runs = require_all_runs
        self.round_timeout_s = round_timeout_s
        self.session_timeout_s = session_timeout_s
        self.logger = setup_logger('MultiRunStabilizer', debug_mode)

    async def stabilize(self, url: str) -> List[ContainerMetric]:
        """
        Audit url run_count times and return averaged per-container metrics

        Raises:
            AuditError: NoContainerFoundError, MeasurementError or
                MeasurementTimeoutError from the failing round
        """
        session_cm = self.oracle.session()
        try:
            session = await self._bounded(session_cm.__aenter__(), self.session_timeout_s,
                                          'browser session start', url)
        except AuditError:
            raise
        except Exception as e:
            raise BrowserLaunchError(f"Browser launch failed: {e}") from e

        try:
            runs = await self._measure_rounds(session, url)
        except BaseException:
            # Keep the round error; a failed release is only logged
            try:
                await self._release(session_cm, url)
            except Exception as release_error:
                self.logger.warning(f"⚠ Browser session release failed for {url}: {release_error}")
            raise
        await self._release(session_cm, url)

        samples = [metric for run in runs for metric in run]
        averaged = mean_by_key(samples, key=lambda metric: metric.container_id, fields=METRIC_FIELDS)

        metrics = [ContainerMetric(container_id=container_id, **values)
                   for container_id, values in averaged.items()]
        self.logger.info(f" Stabilized {url}: {len(metrics)} container(s) over {len(runs)} run(s)")
        return metrics

    async def _measure_rounds(self, session: Any, url: str) -> List[List[ContainerMetric]]:
        runs = []
        last_error = None

        for round_number in range(1, self.run_count + 1):
            self.logger.debug(f"⏱️ Round {round_number}/{self.run_count}: {url}")
            try:
                runs.append(await self._measure_once(session, url, round_number))
            except AuditError as e:
                if self.require_all_runs:
                    raise
                last_error = e
                self.logger.warning(f"⚠ Round {round_number} failed for {url}, skipping: {e}")

        if not runs:
            raise last_error

        return runs

    async def _measure_once(self, session: Any, url: str, round_number: int) -> List[ContainerMetric]:
        try:
            report = await self._bounded(self.oracle.measure(session, url), self.round_timeout_s,
                                         f"measurement round {round_number}", url)
        except AuditError:
            raise
        except Exception as e:
            raise MeasurementError(f"Measurement failed for {url}: {e}") from e
        return extract_gtm_metrics(report)

    async def _release(self, session_cm: Any, url: str) -> None:
        await self._bounded(session_cm.__aexit__(None, None, None), self.session_timeout_s,
                            'browser session shutdown', url)

    async def _bounded(self, awaitable: Awaitable, timeout_s: float, operation: str, url: str) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout_s)
        except MeasurementTimeoutError:
            raise
        except asyncio.TimeoutError as e:
            raise MeasurementTimeoutError(operation, timeout_s, url) from e
