"""Tests for the HTTP API."""
import pytest

from web.api.main import cache


async def _create_mod(client, headers, name="SongCore", game_name="BeatSaber"):
    r = await client.post(
        "/api/mods/create",
        json={
            "name": name,
            "description": "Core song loading",
            "git_url": "https://github.com/example/songcore",
            "category": "core",
            "game_name": game_name,
        },
        headers=headers,
    )
    assert r.status_code == 200, r.text
    return r.json()["mod"]


async def _upload(client, headers, mod_id, game_version_id, version="1.0.0", platform="steampc"):
    return await client.post(
        f"/api/mods/{mod_id}/upload",
        json={
            "mod_version": version,
            "platform": platform,
            "supported_game_version_ids": [game_version_id],
            "zip_hash": "abc123",
            "content_hashes": [{"path": "Plugins/SongCore.dll", "hash": "def456"}],
        },
        headers=headers,
    )


@pytest.mark.asyncio
async def test_health(client):
    """Health endpoint runs the integrity check."""
    r = await client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_me_requires_auth(client, admin_headers):
    r = await client.get("/api/auth/me")
    assert r.status_code == 401
    r = await client.get("/api/auth/me", headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["user"]["username"] == "ServerAdmin"


@pytest.mark.asyncio
async def test_game_versions_flow(client, admin_headers, author, make_headers):
    r = await client.post("/api/versions", json={"game_name": "BeatSaber", "version": "1.29.1"}, headers=admin_headers)
    assert r.status_code == 200
    first = r.json()["version"]
    assert first["default_version"] is True

    r = await client.post("/api/versions", json={"game_name": "BeatSaber", "version": "1.29.1"}, headers=admin_headers)
    assert r.status_code == 409
    assert r.json()["error"] == "CONFLICT"

    r = await client.post(
        "/api/versions", json={"game_name": "BeatSaber", "version": "1.30.0"}, headers=make_headers(author.id)
    )
    assert r.status_code == 403

    r = await client.post("/api/versions", json={"game_name": "BeatSaber", "version": "1.30.0"}, headers=admin_headers)
    second = r.json()["version"]
    assert second["default_version"] is False

    r = await client.post("/api/versions/default", json={"game_version_id": second["id"]}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["previous"]["id"] == first["id"]

    r = await client.get("/api/versions/default", params={"game_name": "BeatSaber"})
    assert r.json()["version"]["id"] == second["id"]

    r = await client.get("/api/games")
    games = {g["name"]: g["default_version"] for g in r.json()["games"]}
    assert games["BeatSaber"]["version"] == "1.30.0"
    assert games["Chromapper"] is None


@pytest.mark.asyncio
async def test_upload_and_approve_flow(client, author, approver, make_headers, game_version):
    author_headers = make_headers(author.id)
    approver_headers = make_headers(approver.id)
    mod = await _create_mod(client, author_headers)
    assert mod["visibility"] == "unverified"
    assert mod["author_ids"] == [author.id]

    r = await _upload(client, author_headers, mod["id"], game_version.id)
    assert r.status_code == 200, r.text
    version = r.json()["mod_version"]
    assert version["supported_game_versions"][0]["version"] == "1.29.1"

    r = await _upload(client, author_headers, mod["id"], game_version.id)
    assert r.status_code == 409
    assert r.json()["message"] == "Version already exists."

    # Approvers only
    r = await client.post(f"/api/approval/mod/{mod['id']}", json={"status": "verified"}, headers=author_headers)
    assert r.status_code == 403

    r = await client.get("/api/approval/modversions", headers=approver_headers)
    assert [v["mod_version"]["id"] for v in r.json()["mod_versions"]] == [version["id"]]

    r = await client.post(f"/api/approval/mod/{mod['id']}", json={"status": "verified"}, headers=approver_headers)
    assert r.status_code == 200
    r = await client.post(
        f"/api/approval/modversion/{version['id']}", json={"status": "verified"}, headers=approver_headers
    )
    assert r.status_code == 200
    assert r.json()["mod_version"]["visibility"] == "verified"

    r = await client.get("/api/mods", params={"game_name": "BeatSaber"})
    assert r.status_code == 200
    listed = r.json()["mods"]
    assert [m["mod"]["name"] for m in listed] == ["SongCore"]
    assert listed[0]["latest"]["mod_version"] == "1.0.0"


@pytest.mark.asyncio
async def test_upload_requires_author(client, author, make_user, make_headers, game_version):
    mod = await _create_mod(client, make_headers(author.id))
    stranger = await make_user("stranger")
    r = await _upload(client, make_headers(stranger.id), mod["id"], game_version.id)
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_upload_unknown_game_version(client, author, make_headers):
    headers = make_headers(author.id)
    mod = await _create_mod(client, headers)
    r = await _upload(client, headers, mod["id"], 999)
    assert r.status_code == 404
    assert r.json()["error"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_duplicate_mod_name(client, author, make_headers):
    headers = make_headers(author.id)
    await _create_mod(client, headers)
    r = await client.post(
        "/api/mods/create",
        json={
            "name": "SongCore",
            "description": "Another",
            "git_url": "https://github.com/example/other",
            "category": "core",
            "game_name": "BeatSaber",
        },
        headers=headers,
    )
    assert r.status_code == 409


@pytest.mark.asyncio
async def test_author_edit_of_verified_mod_is_queued(client, author, approver, make_user, make_headers):
    author_headers = make_headers(author.id)
    approver_headers = make_headers(approver.id)
    mod = await _create_mod(client, author_headers)

    # Unverified: author writes directly
    r = await client.patch(f"/api/mods/{mod['id']}", json={"description": "Updated"}, headers=author_headers)
    assert r.status_code == 200
    assert r.json()["mod"]["description"] == "Updated"

    await client.post(f"/api/approval/mod/{mod['id']}", json={"status": "verified"}, headers=approver_headers)

    # Verified: author edit goes to the queue
    r = await client.patch(f"/api/mods/{mod['id']}", json={"name": "SongCore2"}, headers=author_headers)
    assert r.status_code == 200
    edit = r.json()["edit"]
    assert edit["obj_table_name"] == "mods"
    assert edit["obj"] == {"name": "SongCore2"}

    r = await client.get(f"/api/mods/{mod['id']}")
    assert r.json()["mod"]["name"] == "SongCore"

    r = await client.get("/api/approval/edits", headers=approver_headers)
    assert [e["id"] for e in r.json()["edits"]] == [edit["id"]]

    r = await client.post(f"/api/approval/edit/{edit['id']}/approve", headers=approver_headers)
    assert r.status_code == 200
    body = r.json()
    assert body["mod"]["name"] == "SongCore2"
    assert body["mod"]["description"] == "Updated"
    assert body["edit"]["approved"] is True
    assert body["edit"]["approver_id"] == approver.id

    r = await client.post(f"/api/approval/edit/{edit['id']}/approve", headers=approver_headers)
    assert r.status_code == 409

    stranger = await make_user("stranger")
    r = await client.patch(f"/api/mods/{mod['id']}", json={"name": "Hijacked"}, headers=make_headers(stranger.id))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_edit_with_null_fields_changes_nothing(client, author, make_headers, game_version):
    headers = make_headers(author.id)
    mod = await _create_mod(client, headers)

    r = await client.patch(f"/api/mods/{mod['id']}", json={"description": None}, headers=headers)
    assert r.status_code == 400
    r = await client.patch(f"/api/mods/{mod['id']}", json={"description": None, "git_url": None, "name": None}, headers=headers)
    assert r.status_code == 400

    r = await client.get(f"/api/mods/{mod['id']}", headers=headers)
    assert r.json()["mod"]["description"] == mod["description"]
    assert r.json()["mod"]["name"] == mod["name"]

    version = (await _upload(client, headers, mod["id"], game_version.id)).json()["mod_version"]
    r = await client.patch(f"/api/modversions/{version['id']}", json={"dependencies": None}, headers=headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_deny_edit(client, author, approver, make_headers, game_version):
    author_headers = make_headers(author.id)
    approver_headers = make_headers(approver.id)
    mod = await _create_mod(client, author_headers)
    version = (await _upload(client, author_headers, mod["id"], game_version.id)).json()["mod_version"]
    await client.post(f"/api/approval/modversion/{version['id']}", json={"status": "verified"}, headers=approver_headers)

    r = await client.patch(f"/api/modversions/{version['id']}", json={"mod_version": "1.0.1"}, headers=author_headers)
    edit = r.json()["edit"]
    assert edit["obj_table_name"] == "modVersions"

    r = await client.post(f"/api/approval/edit/{edit['id']}/deny", headers=approver_headers)
    assert r.status_code == 200
    r = await client.get("/api/approval/edits", headers=approver_headers)
    assert r.json()["edits"] == []


@pytest.mark.asyncio
async def test_banned_user_rejected(client, make_user, make_headers):
    banned = await make_user("banned", sitewide=["banned"])
    r = await client.get("/api/auth/me", headers=make_headers(banned.id))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_per_game_ban_blocks_approval(client, author, make_user, make_headers):
    mod = await _create_mod(client, make_headers(author.id))
    user = await make_user("mixed", sitewide=["approver"], per_game={"BeatSaber": ["banned"]})
    r = await client.post(f"/api/approval/mod/{mod['id']}", json={"status": "verified"}, headers=make_headers(user.id))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_private_mod_hidden(client, author, make_headers):
    mod = await _create_mod(client, make_headers(author.id))
    r = await client.patch(
        f"/api/mods/{mod['id']}", json={"description": "still unverified"}, headers=make_headers(author.id)
    )
    assert r.status_code == 200
    r = await client.post(f"/api/approval/mod/{mod['id']}", json={"status": "removed"}, headers=make_headers(1))
    assert r.status_code == 200
    r = await client.get(f"/api/mods/{mod['id']}")
    assert r.status_code == 404
    r = await client.get(f"/api/mods/{mod['id']}", headers=make_headers(author.id))
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_download_counts(client, author, make_headers, game_version):
    headers = make_headers(author.id)
    mod = await _create_mod(client, headers)
    version = (await _upload(client, headers, mod["id"], game_version.id)).json()["mod_version"]
    await client.get(f"/api/modversions/{version['id']}/download")
    r = await client.get(f"/api/modversions/{version['id']}/download")
    assert r.json() == {"zip_hash": "abc123", "download_count": 2}


@pytest.mark.asyncio
async def test_role_grant_and_revoke(client, admin_headers, author, make_headers):
    r = await client.post(
        f"/api/admin/users/{author.id}/roles",
        json={"role": "approver", "game_name": "BeatSaber"},
        headers=admin_headers,
    )
    assert r.status_code == 200
    assert r.json()["user"]["roles"]["per_game"]["BeatSaber"] == ["approver"]

    r = await client.get("/api/approval/mods", headers=make_headers(author.id))
    assert r.status_code == 200

    r = await client.delete(
        f"/api/admin/users/{author.id}/roles",
        params={"role": "approver", "game_name": "BeatSaber"},
        headers=admin_headers,
    )
    assert r.json()["user"]["roles"]["per_game"]["BeatSaber"] == []

    r = await client.post(f"/api/admin/users/{author.id}/roles", json={"role": "admin"}, headers=make_headers(author.id))
    assert r.status_code == 403

    r = await client.delete("/api/admin/users/1/roles", params={"role": "admin"}, headers=admin_headers)
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_motd_flow(client, make_user, make_headers, game_version):
    await cache.refresh("game_versions")
    moderator = await make_user("moderator", per_game={"BeatSaber": ["moderator"]})
    r = await client.post(
        "/api/motd",
        json={
            "game_name": "BeatSaber",
            "message": "Mods are being updated for 1.29.1",
            "start_time": "2020-01-01T00:00:00Z",
            "end_time": "2099-01-01T00:00:00Z",
        },
        headers=make_headers(moderator.id),
    )
    assert r.status_code == 200, r.text
    motd_id = r.json()["motd"]["id"]

    r = await client.get("/api/motd", params={"game_name": "BeatSaber", "game_version": "1.29.1"})
    assert [m["id"] for m in r.json()["messages"]] == [motd_id]

    r = await client.get("/api/motd", params={"game_name": "BeatSaber", "game_version": "0.0.0"})
    assert r.status_code == 400

    r = await client.delete(f"/api/motd/{motd_id}", headers=make_headers(moderator.id))
    assert r.status_code == 200
    r = await client.get("/api/motd", params={"game_name": "BeatSaber"})
    assert r.json()["messages"] == []


@pytest.mark.asyncio
async def test_dependency_successor_endpoint(client, author, approver, admin_headers, make_headers, game_version):
    author_headers = make_headers(author.id)
    r = await client.post("/api/versions", json={"game_name": "BeatSaber", "version": "1.30.0"}, headers=admin_headers)
    newer_gv = r.json()["version"]
    mod = await _create_mod(client, author_headers)
    old = (await _upload(client, author_headers, mod["id"], game_version.id, version="1.2.0")).json()["mod_version"]
    new = (await _upload(client, author_headers, mod["id"], newer_gv["id"], version="1.3.0")).json()["mod_version"]
    await client.post(f"/api/approval/modversion/{new['id']}", json={"status": "verified"}, headers=make_headers(approver.id))

    r = await client.get(f"/api/modversions/{old['id']}/successor", params={"game_version_id": newer_gv["id"]})
    assert r.status_code == 200
    assert r.json()["successor"]["id"] == new["id"]

    r = await client.get(f"/api/modversions/{old['id']}/successor", params={"game_version_id": game_version.id})
    assert r.json() == {"successor": None, "supported": True}
