import asyncio
import time

from fastapi.testclient import TestClient

from fxrates.main import create_app
from fxrates.services.rate_service import STATUS_OK, RefreshOutcome
from fxrates.services.rates.scheduler import RefreshScheduler


class CountingService:
    def __init__(self, fail: bool = False):
        self.calls = 0
        self.fail = fail

    def refresh_rates(self):
        self.calls += 1
        if self.fail:
            raise RuntimeError("boom")
        return RefreshOutcome(status=STATUS_OK, saved=1)


def _run(coro):
    return asyncio.run(coro)


def test_scheduler_runs_on_interval():
    svc = CountingService()

    async def scenario():
        scheduler = RefreshScheduler(svc, interval_seconds=0.01)
        scheduler.start()
        assert scheduler.running
        await asyncio.sleep(0.2)
        await scheduler.stop()
        assert not scheduler.running
        return scheduler

    scheduler = _run(scenario())
    assert svc.calls >= 2
    assert scheduler.runs == svc.calls
    assert scheduler.last_outcome.ok


def test_scheduler_waits_when_not_running_on_start():
    svc = CountingService()

    async def scenario():
        scheduler = RefreshScheduler(svc, interval_seconds=60, run_on_start=False)
        scheduler.start()
        await asyncio.sleep(0.05)
        await scheduler.stop()

    _run(scenario())
    assert svc.calls == 0


def test_scheduler_survives_crashing_refresh():
    svc = CountingService(fail=True)

    async def scenario():
        scheduler = RefreshScheduler(svc, interval_seconds=0.01)
        scheduler.start()
        await asyncio.sleep(0.2)
        await scheduler.stop()

    _run(scenario())
    assert svc.calls >= 2


def test_app_refreshes_on_startup(settings, provider):
    settings.scheduler_enabled = True
    settings.refresh_on_startup = True
    app = create_app(settings_override=settings, provider_override=provider)
    with TestClient(app) as client:
        deadline = time.monotonic() + 5
        body = client.get("/health").json()
        while body["latest_rate_date"] is None and time.monotonic() < deadline:
            time.sleep(0.05)
            body = client.get("/health").json()
        assert body["scheduler_running"] is True
        assert body["latest_rate_date"] == "2024-01-01"
    assert not app.state.scheduler.running
