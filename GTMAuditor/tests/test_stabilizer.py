"""
Tests for the multi-run stabilizer

All tests use FakeOracle - no browser, no Lighthouse.
"""

import pytest

from audit_errors import (
    BrowserLaunchError,
    MeasurementError,
    MeasurementTimeoutError,
    NoContainerFoundError,
)
from stabilizer import MultiRunStabilizer
from conftest import FakeOracle, gtm_report, make_report

URL = "https://shop.example"


def by_id(metrics):
    return {metric.container_id: metric for metric in metrics}


class TestAveraging:
    @pytest.mark.asyncio
    async def test_three_runs_are_averaged(self):
        oracle = FakeOracle({URL: [
            gtm_report(URL, GTM_X=(100, 50, 10)),
            gtm_report(URL, GTM_X=(200, 60, 20)),
            gtm_report(URL, GTM_X=(300, 70, 31)),
        ]})

        metrics = await MultiRunStabilizer(oracle).stabilize(URL)

        (metric,) = metrics
        assert metric.container_id == "GTM-X"
        assert metric.total_cpu_time_ms == 200
        assert metric.script_evaluation_ms == 60
        assert metric.script_parse_time_ms == 20
        assert oracle.calls == [URL, URL, URL]

    @pytest.mark.asyncio
    async def test_average_rounds_half_up(self):
        oracle = FakeOracle({URL: [
            gtm_report(URL, GTM_X=(100, 1, 0)),
            gtm_report(URL, GTM_X=(101, 2, 1)),
        ]})

        (metric,) = await MultiRunStabilizer(oracle, run_count=2).stabilize(URL)

        assert metric.total_cpu_time_ms == 101
        assert metric.script_evaluation_ms == 2
        assert metric.script_parse_time_ms == 1

    @pytest.mark.asyncio
    async def test_multiple_containers_averaged_separately(self):
        oracle = FakeOracle({URL: [
            gtm_report(URL, GTM_PROD=(400, 300, 40), GTM_STAGE=(100, 80, 10)),
            gtm_report(URL, GTM_PROD=(600, 500, 60), GTM_STAGE=(120, 90, 12)),
            gtm_report(URL, GTM_PROD=(500, 400, 50), GTM_STAGE=(110, 85, 14)),
        ]})

        metrics = by_id(await MultiRunStabilizer(oracle).stabilize(URL))

        assert set(metrics) == {"GTM-PROD", "GTM-STAGE"}
        assert metrics["GTM-PROD"].total_cpu_time_ms == 500
        assert metrics["GTM-STAGE"].total_cpu_time_ms == 110
        assert metrics["GTM-STAGE"].script_parse_time_ms == 12

    @pytest.mark.asyncio
    async def test_container_missing_from_a_round_is_not_counted_as_zero(self):
        oracle = FakeOracle({URL: [
            gtm_report(URL, GTM_A=(100, 10, 1), GTM_B=(300, 30, 3)),
            gtm_report(URL, GTM_A=(200, 20, 2)),
            gtm_report(URL, GTM_A=(300, 30, 3), GTM_B=(500, 50, 5)),
        ]})

        metrics = by_id(await MultiRunStabilizer(oracle).stabilize(URL))

        assert metrics["GTM-A"].total_cpu_time_ms == 200
        assert metrics["GTM-B"].total_cpu_time_ms == 400

    @pytest.mark.asyncio
    async def test_duplicate_entries_in_one_round_merge_by_id(self):
        oracle = FakeOracle({URL: [
            make_report(URL,
                        ("https://www.googletagmanager.com/gtm.js?id=GTM-D", 100, 10, 1),
                        ("https://www.googletagmanager.com/gtm.js?id=GTM-D", 300, 30, 3)),
        ]})

        (metric,) = await MultiRunStabilizer(oracle, run_count=1).stabilize(URL)

        assert metric.container_id == "GTM-D"
        assert metric.total_cpu_time_ms == 200


class TestSessionSafety:
    @pytest.mark.asyncio
    async def test_one_session_for_all_rounds(self):
        oracle = FakeOracle({URL: [gtm_report(URL, GTM_X=(1, 1, 1))] * 3})

        await MultiRunStabilizer(oracle).stabilize(URL)

        assert len(oracle.sessions) == 1
        assert oracle.sessions[0].entered == 1
        assert oracle.sessions[0].exited == 1

    @pytest.mark.asyncio
    async def test_session_released_once_when_round_two_throws(self):
        oracle = FakeOracle({URL: [
            gtm_report(URL, GTM_X=(100, 10, 1)),
            MeasurementError("net::ERR_CONNECTION_RESET"),
            gtm_report(URL, GTM_X=(300, 30, 3)),
        ]})

        with pytest.raises(MeasurementError, match="ERR_CONNECTION_RESET"):
            await MultiRunStabilizer(oracle).stabilize(URL)

        (session,) = oracle.sessions
        assert session.exited == 1
        assert len(oracle.calls) == 2

    @pytest.mark.asyncio
    async def test_unexpected_oracle_error_is_wrapped_and_session_released(self):
        oracle = FakeOracle({URL: [RuntimeError("socket hang up")]})

        with pytest.raises(MeasurementError) as excinfo:
            await MultiRunStabilizer(oracle).stabilize(URL)

        assert isinstance(excinfo.value.__cause__, RuntimeError)
        assert oracle.sessions[0].exited == 1

    @pytest.mark.asyncio
    async def test_round_timeout(self):
        oracle = FakeOracle({URL: [gtm_report(URL, GTM_X=(1, 1, 1))]}, delay_s=1)
        stabilizer = MultiRunStabilizer(oracle, round_timeout_s=0.05)

        with pytest.raises(MeasurementTimeoutError) as excinfo:
            await stabilizer.stabilize(URL)

        assert isinstance(excinfo.value, TimeoutError)
        assert "measurement round 1" in str(excinfo.value)
        assert oracle.sessions[0].exited == 1

    @pytest.mark.asyncio
    async def test_launch_failure(self):
        oracle = FakeOracle({URL: []}, launch_error=OSError("chrome not found"))

        with pytest.raises(BrowserLaunchError, match="chrome not found"):
            await MultiRunStabilizer(oracle).stabilize(URL)

        assert oracle.calls == []
        assert oracle.sessions[0].exited == 0


class TestRunPolicy:
    @pytest.mark.asyncio
    async def test_zero_container_round_fails_whole_url_by_default(self):
        oracle = FakeOracle({URL: [
            gtm_report(URL, GTM_X=(100, 10, 1)),
            make_report(URL, ("https://shop.example/app.js", 1, 1, 1)),
            gtm_report(URL, GTM_X=(100, 10, 1)),
        ]})

        with pytest.raises(NoContainerFoundError):
            await MultiRunStabilizer(oracle).stabilize(URL)

    @pytest.mark.asyncio
    async def test_partial_success_when_allowed(self):
        oracle = FakeOracle({URL: [
            gtm_report(URL, GTM_X=(100, 10, 1)),
            make_report(URL, ("https://shop.example/app.js", 1, 1, 1)),
            gtm_report(URL, GTM_X=(300, 30, 3)),
        ]})

        (metric,) = await MultiRunStabilizer(oracle, require_all_runs=False).stabilize(URL)

        assert metric.total_cpu_time_ms == 200
        assert len(oracle.calls) == 3

    @pytest.mark.asyncio
    async def test_partial_mode_fails_when_no_round_succeeds(self):
        no_gtm = make_report(URL, ("https://shop.example/app.js", 1, 1, 1))
        oracle = FakeOracle({URL: [MeasurementError("boom"), no_gtm, no_gtm]})

        with pytest.raises(NoContainerFoundError):
            await MultiRunStabilizer(oracle, require_all_runs=False).stabilize(URL)

        assert oracle.sessions[0].exited == 1

    @pytest.mark.asyncio
    async def test_round_error_kept_when_release_also_fails(self):
        oracle = FakeOracle({URL: [MeasurementError("net::ERR_NAME_NOT_RESOLVED")]},
                            exit_error=RuntimeError("browser already gone"))

        with pytest.raises(MeasurementError, match="ERR_NAME_NOT_RESOLVED"):
            await MultiRunStabilizer(oracle).stabilize(URL)

        assert oracle.sessions[0].exited == 1

    @pytest.mark.asyncio
    async def test_release_failure_after_good_rounds_is_reported(self):
        oracle = FakeOracle({URL: [gtm_report(URL, GTM_X=(1, 1, 1))]},
                            exit_error=RuntimeError("browser already gone"))

        with pytest.raises(RuntimeError, match="browser already gone"):
            await MultiRunStabilizer(oracle, run_count=1).stabilize(URL)

        assert oracle.sessions[0].exited == 1

    def test_run_count_must_be_positive(self):
        with pytest.raises(ValueError):
            MultiRunStabilizer(FakeOracle(), run_count=0)
