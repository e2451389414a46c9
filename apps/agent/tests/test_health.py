"""Tests for the HTTP surface and application lifespan."""

from fastapi.testclient import TestClient

from tmagent.context import AppContext
from tmagent.main import create_app
from tmagent.models import Decision

from tests.conftest import make_settings
from tests.fakes import FakeChannel, FakeGenerator, FakeStore, FakeWarehouse


def make_client(**overrides):
    settings = make_settings(
        twitter_dry_run=True,
        twitter_poll_interval=3600,
        action_interval=3600,
        **overrides,
    )
    built = []

    async def build_context(s):
        context = AppContext.assemble(
            s,
            store=FakeStore(),
            channel=FakeChannel(),
            generator=FakeGenerator(decision=Decision.IGNORE),
            warehouse=FakeWarehouse(),
        )
        built.append(context)
        return context

    return TestClient(create_app(settings, build_context=build_context)), built


class TestHealth:
    def test_health(self):
        client, _ = make_client()
        with client:
            resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "healthy", "version": "1.0.0"}

    def test_status_before_start_is_unavailable(self):
        client, _ = make_client()
        resp = client.get("/status")
        assert resp.status_code == 503

    def test_status_reports_running_agent(self):
        client, built = make_client()
        with client:
            body = client.get("/status").json()
        assert body["agent"] == "test-agent"
        assert body["dry_run"] is True
        assert body["scheduler"]["running"] is True
        assert set(body["scheduler"]["jobs"]) == {"interactions", "posting", "actions"}
        assert body["pool"]["max"] == 2
        assert body["web_search_enabled"] is False

        context = built[0]
        assert context.channel.initialized
        assert context.channel.closed
        assert context.store.closed
        assert context.actions.stopped
        assert not context.scheduler.running

    def test_actions_job_disabled(self):
        client, _ = make_client(enable_action_processing=False)
        with client:
            body = client.get("/status").json()
        assert "actions" not in body["scheduler"]["jobs"]
