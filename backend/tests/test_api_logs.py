"""Tests for the /api/logs endpoints."""

import json
from dataclasses import replace
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

from conftest import make_record
from logviewer.core.errors import PermissionDenied, StoreUnavailable
from logviewer.services.mock_data import write_record


@pytest.fixture
def seeded(store):
    write_record(store, make_record("a", user_id="u1", message="Error at position: 5, reading: 1", seq=1))
    write_record(store, make_record("b", user_id="u2", message="Error at position: 9, reading: 2", seq=2, platform="iOS"))
    write_record(store, make_record("c", user_id="u1", message="User joined the game", seq=3), legacy_key=True)
    write_record(store, make_record("d", date="2024-09-20", server="TESTINGSERVER", seq=4))
    return store


class TestListLogs:
    @pytest.mark.asyncio
    async def test_pages_newest_first(self, client: AsyncClient, seeded):
        resp = await client.get("/api/logs", params={"date": "2024-09-25", "pageSize": 2})

        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 3
        assert data["totalPages"] == 2
        assert data["pageSize"] == 2
        assert data["strategy"] == "project_date"
        assert data["indexPaths"] == ["indexes/project_date/Mega/2024-09-25"]
        assert [log["logId"] for log in data["logs"]] == ["c", "b"]

    @pytest.mark.asyncio
    async def test_second_page_and_ascending_sort(self, client: AsyncClient, seeded):
        resp = await client.get(
            "/api/logs",
            params={"date": "2024-09-25", "pageSize": 2, "page": 2, "sortDir": "asc"},
        )

        assert [log["logId"] for log in resp.json()["logs"]] == ["c"]

    @pytest.mark.asyncio
    async def test_dedup_by_message(self, client: AsyncClient, store):
        write_record(store, make_record("a", message="same", seq=1))
        write_record(store, make_record("b", message="same", seq=2))

        resp = await client.get("/api/logs", params={"date": "2024-09-25", "dedup": "byMessage"})

        assert [log["logId"] for log in resp.json()["logs"]] == ["a"]

    @pytest.mark.asyncio
    async def test_fanout_reports_diagnostics(self, client: AsyncClient, seeded):
        resp = await client.get("/api/logs", params={"monthsBack": 1})

        data = resp.json()
        assert data["strategy"] == "date_fanout"
        assert data["total"] == 4
        assert data["diagnostics"]["index_reads"] == 31
        assert len(data["indexPaths"]) == 5

    @pytest.mark.asyncio
    async def test_no_project_or_user_returns_empty(self, client: AsyncClient, context, seeded):
        context.settings = replace(context.settings, default_project="")

        resp = await client.get("/api/logs", params={"date": "2024-09-25"})

        data = resp.json()
        assert resp.status_code == 200
        assert data["logs"] == []
        assert data["strategy"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "params",
        [{"date": "2024-13-45"}, {"date": "25/09/2024"}, {"server": "a/b"}, {"monthsBack": -1}],
    )
    async def test_invalid_filters_are_rejected(self, client: AsyncClient, params):
        resp = await client.get("/api/logs", params=params)

        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_store_outage_maps_to_503(self, client: AsyncClient, store):
        store.get_range = AsyncMock(side_effect=StoreUnavailable("down", "indexes/x"))

        resp = await client.get("/api/logs", params={"date": "2024-09-25"})

        assert resp.status_code == 503
        data = resp.json()
        assert data["error"] == "store_unavailable"
        assert data["path"] == "indexes/x"
        assert data["requestId"].startswith("req_")

    @pytest.mark.asyncio
    async def test_permission_denied_maps_to_403(self, client: AsyncClient, store):
        store.get_range = AsyncMock(side_effect=PermissionDenied("nope", "indexes/x"))

        resp = await client.get("/api/logs", params={"date": "2024-09-25"})

        assert resp.status_code == 403
        assert resp.json()["error"] == "permission_denied"


class TestGroups:
    @pytest.mark.asyncio
    async def test_similar_errors(self, client: AsyncClient, seeded):
        resp = await client.get(
            "/api/logs/groups", params={"date": "2024-09-25", "groupBy": "similarErrors"}
        )

        data = resp.json()
        assert data["total"] == 3
        assert [(g["key"], g["count"]) for g in data["groups"]] == [
            ("Error at position: N, reading: N", 2),
            ("User joined the game", 1),
        ]
        assert data["groups"][0]["sample"] == "Error at position: 5, reading: 1"

    @pytest.mark.asyncio
    async def test_user_errors_are_nested(self, client: AsyncClient, seeded):
        resp = await client.get(
            "/api/logs/groups", params={"date": "2024-09-25", "groupBy": "userErrors"}
        )

        groups = resp.json()["groups"]
        assert [(g["key"], g["count"]) for g in groups] == [("u1", 2), ("u2", 1)]
        assert len(groups[0]["groups"]) == 2

    @pytest.mark.asyncio
    async def test_exact_field(self, client: AsyncClient, seeded):
        resp = await client.get(
            "/api/logs/groups", params={"date": "2024-09-25", "groupBy": "platform"}
        )

        assert [g["key"] for g in resp.json()["groups"]] == ["Android", "iOS"]

    @pytest.mark.asyncio
    async def test_group_by_is_required(self, client: AsyncClient):
        resp = await client.get("/api/logs/groups")

        assert resp.status_code == 422


class TestExport:
    @pytest.mark.asyncio
    async def test_csv_download(self, client: AsyncClient, seeded):
        resp = await client.get(
            "/api/logs/export", params={"date": "2024-09-25", "format": "csv"}
        )

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert resp.headers["content-disposition"] == 'attachment; filename="logs_2024-09-30.csv"'
        assert len(resp.text.splitlines()) == 4

    @pytest.mark.asyncio
    async def test_grouped_json(self, client: AsyncClient, seeded):
        resp = await client.get(
            "/api/logs/export",
            params={"date": "2024-09-25", "format": "json", "groupBy": "userErrors"},
        )

        payload = json.loads(resp.text)
        assert "logs_grouped_2024-09-30.json" in resp.headers["content-disposition"]
        assert [g["group"] for g in payload] == [
            "u1 :: Error at position: N, reading: N",
            "u1 :: User joined the game",
            "u2 :: Error at position: N, reading: N",
        ]


class TestOptions:
    @pytest.mark.asyncio
    async def test_lists_dimension_values(self, client: AsyncClient, seeded):
        resp = await client.get("/api/logs/options")

        data = resp.json()
        assert data["project"] == "Mega"
        assert data["projects"] == ["Mega"]
        assert data["servers"] == ["PRODSERVER", "TESTINGSERVER"]
        assert data["platforms"] == ["Android", "iOS"]
        assert data["dates"] == ["2024-09-25", "2024-09-20"]
        assert data["users"] == ["u1", "u2", "user-1"]

    @pytest.mark.asyncio
    async def test_unknown_project_has_no_values(self, client: AsyncClient, seeded):
        data = (await client.get("/api/logs/options", params={"project": "Nope"})).json()

        assert data["servers"] == []
        assert data["dates"] == []
        assert data["users"] == []


class TestRecord:
    @pytest.mark.asyncio
    async def test_found(self, client: AsyncClient, seeded):
        resp = await client.get("/api/logs/record/a")

        assert resp.status_code == 200
        assert resp.json()["userId"] == "u1"

    @pytest.mark.asyncio
    async def test_missing(self, client: AsyncClient):
        resp = await client.get("/api/logs/record/ghost")

        assert resp.status_code == 404


class TestDeletePath:
    @pytest.mark.asyncio
    async def test_requires_matching_confirmation(self, client: AsyncClient, seeded):
        resp = await client.request(
            "DELETE", "/api/logs/path", json={"path": "logs/a", "confirm": "logs/b"}
        )

        assert resp.status_code == 400
        assert await seeded.get("logs/a") is not None

    @pytest.mark.asyncio
    async def test_malformed_path(self, client: AsyncClient, seeded):
        resp = await client.request(
            "DELETE", "/api/logs/path", json={"path": "logs//a", "confirm": "logs//a"}
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_delete_path"

    @pytest.mark.asyncio
    async def test_absent_path(self, client: AsyncClient, seeded):
        resp = await client.request(
            "DELETE", "/api/logs/path", json={"path": "logs/ghost", "confirm": "logs/ghost"}
        )

        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    @pytest.mark.asyncio
    async def test_deletes(self, client: AsyncClient, seeded):
        resp = await client.request(
            "DELETE", "/api/logs/path", json={"path": "logs/a", "confirm": "logs/a"}
        )

        assert resp.status_code == 200
        assert resp.json() == {"deleted": True, "path": "logs/a"}
        assert await seeded.get("logs/a") is None
        assert await seeded.get("logs/b") is not None
