"""MCP tool tests over the in-memory store via ``fastmcp.Client``."""

from __future__ import annotations

import json

from provmem.audit import AuditEventType
from provmem.audit import AuditLogger


def _parse(result) -> dict:
    return json.loads(result.content[0].text)


async def _remember(client, content: str, kind: str = "experienced", **kwargs) -> dict:
    return _parse(await client.call_tool("remember", {"content": content, "kind": kind, **kwargs}))


class TestToolRegistry:
    async def test_every_tool_is_exposed(self, mcp_client):
        tools = await mcp_client.list_tools()
        assert {t.name for t in tools} == {
            "remember",
            "recall",
            "quick_recall",
            "entity_recall",
            "mark_used",
            "verify_fact",
            "find_contradictions",
            "sweep_decay",
            "decay_tier",
            "reflect",
        }


class TestRemember:
    async def test_accepted_with_rationale(self, mcp_client):
        data = await _remember(mcp_client, "Shaun prefers tea over coffee", "told", category="preference", actor="shaun")

        assert data["status"] == "accepted"
        assert data["fact_id"].startswith("fact_")
        assert data["trust_score"] == 0.6
        assert data["rationale"] == ["told source (base: 0.6)", "from: shaun"]
        assert data["corroborations"] == []

    async def test_unknown_kind_rejected(self, mcp_client):
        data = await _remember(mcp_client, "Something happened", "rumour")
        assert data["status"] == "rejected"
        assert data["error_code"] == "validation_error"
        assert data["fact_id"] == ""

    async def test_blank_content_rejected(self, mcp_client):
        data = await _remember(mcp_client, "   ")
        assert data["status"] == "rejected"

    async def test_unknown_category_rejected(self, mcp_client):
        data = await _remember(mcp_client, "Something happened", category="gossip")
        assert data["status"] == "rejected"

    async def test_new_fact_corroborates_existing(self, mcp_client):
        told = await _remember(
            mcp_client,
            "Production deploys happen every Friday afternoon",
            "told",
            actor="maria",
            links=["deploys"],
        )
        data = await _remember(
            mcp_client,
            "Production deploys happen every Friday morning",
            links=["deploys"],
        )

        assert len(data["corroborations"]) == 1
        assert data["corroborations"][0]["fact_id"] == told["fact_id"]
        assert data["corroborations"][0]["new_score"] == 0.71

    async def test_creation_is_audited(self, mcp_client, audit_config):
        data = await _remember(mcp_client, "Redis runs on port 6379")

        events = await AuditLogger(audit_config).read_events(event_type=AuditEventType.FACT_CREATED)
        assert [e.payload["fact_id"] for e in events] == [data["fact_id"]]


class TestRecallTools:
    async def test_recall_roundtrip(self, mcp_client):
        stored = await _remember(mcp_client, "deploy schedule friday is fixed")

        data = _parse(await mcp_client.call_tool("recall", {"query": "deploy schedule friday"}))

        assert data["status"] == "ok"
        assert data["meta"]["returned"] == 1
        assert data["results"][0]["fact"]["id"] == stored["fact_id"]
        assert data["results"][0]["scores"]["lexical"] == 1.0

    async def test_recall_limit_is_clamped(self, mcp_client):
        data = _parse(await mcp_client.call_tool("recall", {"query": "anything", "limit": 0}))
        assert data["meta"]["limit"] == 10

    async def test_recall_bad_category(self, mcp_client):
        data = _parse(
            await mcp_client.call_tool("recall", {"query": "anything", "categories": ["gossip"]})
        )
        assert data["status"] == "error"
        assert data["error_code"] == "validation_error"
        assert data["results"] == []

    async def test_quick_recall(self, mcp_client):
        await _remember(mcp_client, "deploy schedule friday is fixed")
        await _remember(mcp_client, "deploy schedule friday is fixed", "observed")

        data = _parse(
            await mcp_client.call_tool("quick_recall", {"query": "deploy schedule friday", "limit": 1})
        )
        assert data["meta"]["returned"] == 1

    async def test_fast_path_limits_echo_what_was_applied(self, mcp_client):
        quick = _parse(await mcp_client.call_tool("quick_recall", {"query": "anything", "limit": 0}))
        entity = _parse(await mcp_client.call_tool("entity_recall", {"entity_id": "x", "limit": 500}))

        assert quick["meta"]["limit"] == 10
        assert entity["meta"]["limit"] == 100

    async def test_entity_recall(self, mcp_client):
        stored = await _remember(mcp_client, "Billing uses Stripe", links=["billing"])
        await _remember(mcp_client, "Redis runs on port 6379", links=["redis"])

        data = _parse(await mcp_client.call_tool("entity_recall", {"entity_id": "billing"}))

        assert [r["fact"]["id"] for r in data["results"]] == [stored["fact_id"]]


class TestMaintenanceTools:
    async def test_mark_used(self, mcp_client, clock):
        stored = await _remember(mcp_client, "Redis runs on port 6379")
        clock.advance(days=1)

        data = _parse(await mcp_client.call_tool("mark_used", {"fact_id": stored["fact_id"]}))

        assert data["status"] == "ok"
        assert data["use_count"] == 1
        assert data["last_used_at"] == clock()

    async def test_mark_used_unknown(self, mcp_client):
        data = _parse(await mcp_client.call_tool("mark_used", {"fact_id": "fact_missing"}))
        assert data["status"] == "not_found"

    async def test_verify_fact(self, mcp_client):
        stored = await _remember(mcp_client, "Production deploys happen every Friday", "told", actor="maria")
        await _remember(mcp_client, "Production deploys happen every Friday", "observed")

        data = _parse(await mcp_client.call_tool("verify_fact", {"fact_id": stored["fact_id"]}))

        assert data["verified"] is True
        assert data["new_score"] > 0.6

    async def test_verify_unknown(self, mcp_client):
        data = _parse(await mcp_client.call_tool("verify_fact", {"fact_id": "fact_missing"}))
        assert data["status"] == "not_found"
        assert data["evidence"] == ["Fact not found"]

    async def test_find_contradictions(self, mcp_client):
        await _remember(mcp_client, "the service is enabled", "told", actor="maria", links=["svc"])
        await _remember(mcp_client, "the service is disabled", "observed", links=["svc"])

        data = _parse(await mcp_client.call_tool("find_contradictions", {}))

        assert len(data["contradictions"]) == 1
        assert "enabled" in data["contradictions"][0]["reason"]

    async def test_sweep_and_tier(self, mcp_client, clock):
        stored = await _remember(mcp_client, "Redis runs on port 6379")
        clock.advance(days=45)

        sweep = _parse(await mcp_client.call_tool("sweep_decay", {}))
        tier = _parse(await mcp_client.call_tool("decay_tier", {"fact_id": stored["fact_id"]}))

        assert sweep["updated_count"] == 1
        assert tier["tier"] == "cold"
        assert tier["relevance"] < 1.0

    async def test_tier_unknown(self, mcp_client):
        data = _parse(await mcp_client.call_tool("decay_tier", {"fact_id": "fact_missing"}))
        assert data["status"] == "not_found"
        assert data["tier"] is None

    async def test_reflect(self, mcp_client):
        await _remember(mcp_client, "Shaun prefers tea", "told", category="preference")

        data = _parse(await mcp_client.call_tool("reflect", {}))

        assert data["health_score"] == 93
        assert data["weakly_attributed"] == 2
