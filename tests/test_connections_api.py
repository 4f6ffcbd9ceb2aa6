from __future__ import annotations

from pathlib import Path

import pytest
from httpx import AsyncClient

from app.connections import ConnectionCache
from app.schemas import Connection


@pytest.mark.asyncio
async def test_create_and_list_connections(
    client: AsyncClient, sample_db_path: Path
) -> None:
    resp = await client.post(
        "/api/connections", json={"name": "sample", "path": str(sample_db_path)}
    )
    assert resp.status_code == 201
    created = resp.json()
    assert created["name"] == "sample"
    assert created["tableCount"] == 4
    assert created["isValid"] is True
    assert created["sizeBytes"] > 0

    resp = await client.get("/api/connections")
    assert resp.status_code == 200
    assert [c["id"] for c in resp.json()] == [created["id"]]

    resp = await client.get(f"/api/connections/{created['id']}")
    assert resp.status_code == 200
    assert resp.json()["path"] == created["path"]


@pytest.mark.asyncio
async def test_create_connection_rejects_bad_files(
    client: AsyncClient, tmp_path: Path
) -> None:
    resp = await client.post(
        "/api/connections", json={"name": "ghost", "path": str(tmp_path / "ghost.db")}
    )
    assert resp.status_code == 400
    assert "does not exist" in resp.json()["detail"]

    text_file = tmp_path / "notes.txt"
    text_file.write_text("plain text, not a database " * 40)
    resp = await client.post(
        "/api/connections", json={"name": "notes", "path": str(text_file)}
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_create_connection_requires_fields(client: AsyncClient) -> None:
    resp = await client.post("/api/connections", json={"name": ""})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_delete_connection_closes_handle(
    client: AsyncClient, connection: Connection, cache: ConnectionCache
) -> None:
    await client.get(f"/api/connections/{connection.id}/tables")
    assert connection.id in cache

    resp = await client.delete(f"/api/connections/{connection.id}")
    assert resp.status_code == 204
    assert connection.id not in cache

    resp = await client.get(f"/api/connections/{connection.id}")
    assert resp.status_code == 404

    resp = await client.delete(f"/api/connections/{connection.id}")
    assert resp.status_code == 404
