import aiohttp
import pytest
from aiohttp.test_utils import TestClient

CONTENT = bytes(range(50))


@pytest.fixture
async def file_id(client: TestClient, auth_headers: dict[str, str]) -> int:
    """Upload a 50 byte file and return its ID."""
    form = aiohttp.FormData()
    form.add_field(
        "files", CONTENT, filename="clip.bin", content_type="application/octet-stream"
    )
    resp = await client.post("/files/upload", data=form, headers=auth_headers)
    assert resp.status == 200, await resp.text()
    return (await resp.json())["data"][0]["file"]["id"]


async def share(
    client: TestClient, headers: dict[str, str], file_id: int, **options: object
) -> dict:
    resp = await client.post(
        "/share", json={"fileId": file_id, **options}, headers=headers
    )
    assert resp.status == 200, await resp.text()
    return (await resp.json())["data"]


async def test_share_and_fetch_publicly(
    client: TestClient, auth_headers: dict[str, str], file_id: int
) -> None:
    link = await share(client, auth_headers, file_id)
    assert link["url"] == f"/shared/{link['token']}"
    assert link["fileId"] == file_id
    assert link["hasPassword"] is False
    assert link["accessCount"] == 0

    # No Authorization header on the public endpoints
    resp = await client.get(link["url"])
    assert resp.status == 200
    data = await resp.json()
    assert data["file"] == {
        "id": file_id,
        "name": "clip.bin",
        "mimeType": "application/octet-stream",
        "size": len(CONTENT),
    }
    assert data["link"]["accessCount"] == 0

    resp = await client.get(f"{link['url']}/download")
    assert resp.status == 200
    assert await resp.read() == CONTENT
    assert resp.headers["Content-Disposition"].startswith("attachment;")
    assert resp.headers["Accept-Ranges"] == "bytes"

    resp = await client.get("/share", headers=auth_headers)
    links = (await resp.json())["data"]
    assert [(item["token"], item["accessCount"]) for item in links] == [
        (link["token"], 1)
    ]


async def test_shared_download_range(
    client: TestClient, auth_headers: dict[str, str], file_id: int
) -> None:
    link = await share(client, auth_headers, file_id)
    resp = await client.get(f"{link['url']}/download", headers={"Range": "bytes=10-19"})
    assert resp.status == 206
    assert resp.headers["Content-Range"] == "bytes 10-19/50"
    assert resp.headers["Content-Disposition"].startswith("inline;")
    assert await resp.read() == CONTENT[10:20]

    resp = await client.get(f"{link['url']}/download", headers={"Range": "bytes=80-"})
    assert resp.status == 416


async def test_password_and_limit(
    client: TestClient, auth_headers: dict[str, str], file_id: int
) -> None:
    link = await share(client, auth_headers, file_id, password="pw", maxAccessCount=1)
    assert link["hasPassword"] is True
    assert "password" not in link

    resp = await client.get(f"{link['url']}/download")
    assert resp.status == 401
    resp = await client.get(f"{link['url']}/download", params={"password": "bad"})
    assert resp.status == 401

    resp = await client.get(f"{link['url']}/download", params={"password": "pw"})
    assert resp.status == 200
    assert await resp.read() == CONTENT

    resp = await client.get(f"{link['url']}/download", params={"password": "pw"})
    assert resp.status == 410
    assert (await resp.json())["errorCode"] == "E410"


async def test_revoke_link(
    client: TestClient,
    auth_headers: dict[str, str],
    other_auth_headers: dict[str, str],
    file_id: int,
) -> None:
    link = await share(client, auth_headers, file_id)

    resp = await client.delete(f"/share/{link['token']}", headers=other_auth_headers)
    assert resp.status == 403
    resp = await client.delete(f"/share/{link['token']}")
    assert resp.status == 401

    resp = await client.delete(f"/share/{link['token']}", headers=auth_headers)
    assert resp.status == 200
    assert (await resp.json())["data"]["revoked"] is True

    resp = await client.get(link["url"])
    assert resp.status == 404
    resp = await client.get(f"{link['url']}/download")
    assert resp.status == 404


async def test_share_requires_access(
    client: TestClient,
    auth_headers: dict[str, str],
    other_auth_headers: dict[str, str],
    file_id: int,
) -> None:
    resp = await client.post("/share", json={"fileId": file_id})
    assert resp.status == 401
    resp = await client.post(
        "/share", json={"fileId": file_id}, headers=other_auth_headers
    )
    assert resp.status == 403
    resp = await client.post("/share", json={}, headers=auth_headers)
    assert resp.status == 400
    resp = await client.post(
        "/share", json={"fileId": file_id, "expiresAt": 1}, headers=auth_headers
    )
    assert resp.status == 400


async def test_deleting_file_removes_links(
    client: TestClient, auth_headers: dict[str, str], file_id: int
) -> None:
    link = await share(client, auth_headers, file_id)
    resp = await client.delete(f"/files/{file_id}", headers=auth_headers)
    assert resp.status == 200

    resp = await client.get(link["url"])
    assert resp.status == 404
    resp = await client.get("/share", headers=auth_headers)
    assert (await resp.json())["data"] == []
