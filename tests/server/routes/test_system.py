import json
from pathlib import Path

import jwt
from aiohttp.test_utils import TestClient

from homevault.server.config import ServerConfig
from homevault.server.services.user import JWT_ALGORITHM
from tests.conftest import INACTIVE_USERNAME


async def test_health_is_public(client: TestClient) -> None:
    resp = await client.get("/health")
    assert resp.status == 200
    assert await resp.json() == {"success": True}


async def test_auth_required(client: TestClient) -> None:
    resp = await client.get("/virtual-folders")
    assert resp.status == 401
    data = await resp.json()
    assert data["success"] is False
    assert data["errorCode"] == "E401"

    resp = await client.get(
        "/virtual-folders", headers={"Authorization": "Bearer garbage"}
    )
    assert resp.status == 401


async def test_inactive_user_rejected(
    client: TestClient, server_config: ServerConfig
) -> None:
    token = jwt.encode(
        {"sub": INACTIVE_USERNAME},
        server_config.auth.secret_key,
        algorithm=JWT_ALGORITHM,
    )
    resp = await client.get(
        "/virtual-folders", headers={"Authorization": f"Bearer {token}"}
    )
    assert resp.status == 401


async def test_unknown_route(client: TestClient, auth_headers: dict[str, str]) -> None:
    resp = await client.get("/nope", headers=auth_headers)
    assert resp.status == 404


async def test_trace_log(
    client: TestClient, auth_headers: dict[str, str], mock_trace_log: str
) -> None:
    resp = await client.post(
        "/virtual-folders", json={"name": "Traced"}, headers=auth_headers
    )
    assert resp.status == 200

    lines = Path(mock_trace_log).read_text().splitlines()
    entry = json.loads(lines[-1])
    assert entry["method"] == "POST"
    assert entry["url"].endswith("/virtual-folders")
    assert entry["status"] == 200
    assert "Traced" in entry["body"]
