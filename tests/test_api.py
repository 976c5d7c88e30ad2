"""
测试 HTTP 接口

覆盖 /v1/collector、/v1/snapshot、/v1/health 以及 Token 校验。
"""

import asyncio
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from host_agent.api.app import create_app
from host_agent.api.dependencies import get_database, get_reader, get_source
from host_agent.config import reset_config
from host_agent.database import RollupStore
from host_agent.models import METRIC_FIELDS
from host_agent.reader import RangeReader
from host_agent.tiers import TIER_1MIN, TIER_10S

from .conftest import make_snapshot


def fixed_source():
    return make_snapshot(1_700_000_000, 12.5)


def broken_source():
    raise OSError("psutil unavailable")


@pytest.fixture
def client(store: RollupStore):
    """创建测试客户端（使用临时数据库和固定快照）"""
    app = create_app()

    async def _override_db():
        return store

    async def _override_reader():
        return RangeReader(store)

    async def _override_source():
        return fixed_source

    app.dependency_overrides[get_database] = _override_db
    app.dependency_overrides[get_reader] = _override_reader
    app.dependency_overrides[get_source] = _override_source
    return TestClient(app)


@pytest.fixture
def sample_rows(store):
    """1010..1100 中只有 1010, 1030, 1060, 1100 有数据"""
    for ts in (1010, 1030, 1060, 1100):
        store.insert_row(TIER_10S, make_snapshot(ts, float(ts - 1000)))


class TestCollector:
    def test_gap_filled_response(self, client, sample_rows):
        response = client.get("/v1/collector", params={
            "start_time": 1001,
            "stop_time": 1101,
            "period": 10,
        })

        assert response.status_code == 200
        data = response.json()
        assert list(data) == ["timestamp", *METRIC_FIELDS]
        assert data["timestamp"] == list(range(1010, 1101, 10))
        assert data["cpu_usage"] == [10.0, 0.0, 30.0, 0.0, 0.0, 60.0, 0.0, 0.0, 0.0, 100.0]
        assert data["memory_used"] == [10, 0, 30, 0, 0, 60, 0, 0, 0, 100]

    def test_metric_subset(self, client, sample_rows):
        response = client.get("/v1/collector", params={
            "start_time": 1001,
            "stop_time": 1101,
            "period": 10,
            "metrics": ["network_rx", "load_1"],
        })

        assert response.status_code == 200
        assert list(response.json()) == ["timestamp", "load_1", "network_rx"]

    def test_coarser_period(self, client, store):
        store.insert_row(TIER_1MIN, make_snapshot(1200, 4.0))

        response = client.get("/v1/collector", params={
            "start_time": 1081,
            "stop_time": 1201,
            "period": 60,
            "metrics": ["cpu_usage"],
        })

        assert response.status_code == 200
        assert response.json() == {"timestamp": [1140, 1200], "cpu_usage": [0.0, 4.0]}

    def test_unknown_metric(self, client):
        response = client.get("/v1/collector", params={
            "start_time": 1001,
            "stop_time": 1101,
            "period": 10,
            "metrics": ["gpu_util"],
        })

        assert response.status_code == 400
        assert "gpu_util" in response.json()["detail"]

    def test_stop_before_start(self, client):
        response = client.get("/v1/collector", params={
            "start_time": 2000,
            "stop_time": 1000,
            "period": 10,
        })
        assert response.status_code == 400

    def test_missing_params(self, client):
        response = client.get("/v1/collector", params={"period": 10})
        assert response.status_code == 422

    def test_storage_failure(self, tmp_path):
        bare = RollupStore(str(tmp_path / "bare.db"))
        app = create_app()

        async def _override_reader():
            return RangeReader(bare)

        app.dependency_overrides[get_reader] = _override_reader
        response = TestClient(app).get("/v1/collector", params={
            "start_time": 1001,
            "stop_time": 1101,
            "period": 10,
        })

        assert response.status_code == 503


class TestSnapshot:
    def test_snapshot(self, client):
        response = client.get("/v1/snapshot")

        assert response.status_code == 200
        data = response.json()
        assert data["timestamp"] == 1_700_000_000
        assert data["cpu_usage"] == 12.5
        assert data["network_tx"] == 12

    def test_snapshot_failure(self, client):
        async def _broken():
            return broken_source

        client.app.dependency_overrides[get_source] = _broken
        response = client.get("/v1/snapshot")

        assert response.status_code == 500
        assert "psutil unavailable" in response.json()["detail"]


class TestHealth:
    def test_healthy(self, client):
        response = client.get("/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["checks"] == {"collector": "ok", "database": "ok"}

    def test_degraded_collector(self, client):
        async def _broken():
            return broken_source

        client.app.dependency_overrides[get_source] = _broken
        data = client.get("/v1/health").json()

        assert data["status"] == "degraded"
        assert data["checks"]["collector"] == "error"
        assert data["checks"]["database"] == "ok"

    def test_degraded_database(self, client, tmp_path):
        bare = RollupStore(str(tmp_path / "bare.db"))

        async def _bare():
            return bare

        client.app.dependency_overrides[get_database] = _bare
        data = client.get("/v1/health").json()

        assert data["status"] == "degraded"
        assert data["checks"]["database"] == "error"


class TestAuth:
    @pytest.fixture
    def token(self, monkeypatch):
        monkeypatch.setenv("HOST_AGENT_API__TOKEN", "s3cret")
        reset_config()
        return "s3cret"

    def test_no_token_configured(self, client):
        assert client.get("/v1/snapshot").status_code == 200

    def test_missing_header(self, client, token):
        response = client.get("/v1/snapshot")
        assert response.status_code == 401

    def test_bad_format(self, client, token):
        response = client.get("/v1/snapshot", headers={"Authorization": token})
        assert response.status_code == 401

    def test_wrong_token(self, client, token):
        response = client.get("/v1/snapshot", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_valid_token(self, client, token):
        response = client.get(
            "/v1/collector",
            params={"start_time": 1001, "stop_time": 1101, "period": 10},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 200

    def test_health_is_open(self, client, token):
        assert client.get("/v1/health").status_code == 200


class TestEventLoop:
    def test_slow_snapshot_does_not_block_loop(self):
        def slow_source():
            time.sleep(0.5)
            return fixed_source()

        async def _slow():
            return slow_source

        app = create_app()
        app.dependency_overrides[get_source] = _slow

        async def scenario():
            loop = asyncio.get_running_loop()
            gaps = []
            done = asyncio.Event()

            async def heartbeat():
                last = loop.time()
                while not done.is_set():
                    await asyncio.sleep(0.02)
                    now = loop.time()
                    gaps.append(now - last)
                    last = now

            beat = asyncio.create_task(heartbeat())
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://agent") as client:
                response = await client.get("/v1/snapshot")
            done.set()
            await beat
            return response, gaps

        response, gaps = asyncio.run(scenario())

        assert response.status_code == 200
        assert len(gaps) >= 10
        assert max(gaps) < 0.3
