import aiohttp
import pytest

from wmr_relay import __version__
from wmr_relay.health import HealthReporter, HealthServer


@pytest.mark.asyncio
async def test_health_reporter_snapshot():
    reporter = HealthReporter()

    await reporter.update("mqtt", True)
    await reporter.update("station", False, "quiet")

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "degraded"
    components = {item["name"]: item for item in snapshot["components"]}
    assert components["mqtt"]["healthy"] is True
    assert components["station"]["healthy"] is False
    assert components["station"]["detail"] == "quiet"


@pytest.mark.asyncio
async def test_health_reporter_merges_counters():
    reporter = HealthReporter()

    await reporter.update("station", True, counters={"commands_received": 12})
    await reporter.update("station", False, "quiet", counters={"quiet_streak": 1})

    status = await reporter.get("station")
    assert status.counters == {"commands_received": 12, "quiet_streak": 1}
    snapshot = await reporter.snapshot()
    assert snapshot["components"][0]["counters"]["quiet_streak"] == 1


@pytest.mark.asyncio
async def test_health_reporter_agent_state_affects_status():
    reporter = HealthReporter()

    await reporter.update("mqtt", True)
    await reporter.set_agent_state("awaiting_mqtt", healthy=False)

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "degraded"
    agent = snapshot["agentState"]
    assert agent["state"] == "awaiting_mqtt"
    assert agent["healthy"] is False


@pytest.mark.asyncio
async def test_health_server_serves_snapshot(unused_tcp_port):
    reporter = HealthReporter()
    await reporter.update("station", True)

    host = "127.0.0.1"
    port = unused_tcp_port
    server = HealthServer(reporter, host, port)
    await server.start()

    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(f"http://{host}:{port}/healthz") as response:
                payload = await response.json()
                assert response.status == 200
                assert payload["status"] == "ok"

            await reporter.update("station", False, "terminated")
            async with session.get(f"http://{host}:{port}/healthz") as response:
                assert response.status == 503
    finally:
        await server.stop()


@pytest.mark.asyncio
async def test_snapshot_reports_version_and_uptime():
    reporter = HealthReporter()
    await reporter.set_agent_state("active", healthy=True, detail="relay running")

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "ok"
    assert snapshot["version"] == __version__
    assert snapshot["uptimeSeconds"] >= 0
    assert snapshot["agentState"]["detail"] == "relay running"
