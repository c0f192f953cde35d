"""素材分组树的集成测试。"""

from fastapi.testclient import TestClient

FOLDERS_URL = "/api/v1/attachments/folders"


def _create_folder(client: TestClient, headers: dict, name: str, parent_id=None, **extra) -> dict:
    body = {"name": name, **extra}
    if parent_id is not None:
        body["parentId"] = parent_id
    response = client.post(FOLDERS_URL, headers=headers, json=body)
    assert response.status_code == 200, response.json()
    return response.json()["data"]


def test_folder_requires_authentication(client: TestClient):
    response = client.get(FOLDERS_URL)
    assert response.status_code == 401
    assert response.json()["msg"] == "缺少认证信息"


def test_create_folder_records_actor_and_defaults(client: TestClient, auth_headers):
    folder = _create_folder(client, auth_headers, "  Banners  ", remark="首页横幅")
    assert folder["name"] == "Banners"
    assert folder["parentId"] is None
    assert folder["kind"] == "all"
    assert folder["status"] == "enabled"
    assert folder["sortOrder"] == 0
    assert folder["creatorId"] == 7
    assert folder["updaterId"] == 7

    detail = client.get(f"{FOLDERS_URL}/{folder['id']}", headers=auth_headers)
    assert detail.status_code == 200
    assert detail.json()["data"]["remark"] == "首页横幅"


def test_parent_id_zero_means_root(client: TestClient, auth_headers):
    folder = _create_folder(client, auth_headers, "Root via zero", parent_id=0)
    assert folder["parentId"] is None


def test_sibling_names_are_unique(client: TestClient, auth_headers):
    root = _create_folder(client, auth_headers, "Media")
    _create_folder(client, auth_headers, "Photos", parent_id=root["id"])

    clash = client.post(FOLDERS_URL, headers=auth_headers, json={"name": "Photos", "parentId": root["id"]})
    assert clash.status_code == 409
    payload = clash.json()
    assert payload["kind"] == "ALREADY_EXISTS"
    assert payload["bizCode"] == 32602

    root_clash = client.post(FOLDERS_URL, headers=auth_headers, json={"name": "Media"})
    assert root_clash.status_code == 409

    # 同名分组允许出现在不同父节点下，名称区分大小写
    _create_folder(client, auth_headers, "Photos")
    _create_folder(client, auth_headers, "photos", parent_id=root["id"])


def test_deleted_folder_name_can_be_reused(client: TestClient, auth_headers):
    folder = _create_folder(client, auth_headers, "Temp")
    response = client.delete(f"{FOLDERS_URL}/{folder['id']}", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["data"] == {"id": folder["id"]}

    again = _create_folder(client, auth_headers, "Temp")
    assert again["id"] != folder["id"]


def test_missing_parent_is_rejected(client: TestClient, auth_headers):
    response = client.post(FOLDERS_URL, headers=auth_headers, json={"name": "Orphan", "parentId": 99999})
    assert response.status_code == 404
    assert response.json()["kind"] == "NOT_FOUND"
    assert response.json()["bizCode"] == 32601


def test_folder_cannot_be_its_own_parent(client: TestClient, auth_headers):
    folder = _create_folder(client, auth_headers, "Self")
    response = client.put(f"{FOLDERS_URL}/{folder['id']}", headers=auth_headers, json={"parentId": folder["id"]})
    assert response.status_code == 400
    assert response.json()["kind"] == "INVALID_PARAMETER"
    assert response.json()["msg"] == "父分组不能是自己"


def test_folder_cannot_move_under_descendant(client: TestClient, auth_headers):
    a = _create_folder(client, auth_headers, "A")
    b = _create_folder(client, auth_headers, "B", parent_id=a["id"])
    c = _create_folder(client, auth_headers, "C", parent_id=b["id"])

    response = client.put(f"{FOLDERS_URL}/{a['id']}", headers=auth_headers, json={"parentId": c["id"]})
    assert response.status_code == 400
    assert response.json()["kind"] == "INVALID_PARAMETER"

    # 移动到根节点或兄弟分支是允许的
    moved = client.put(f"{FOLDERS_URL}/{c['id']}", headers=auth_headers, json={"parentId": 0})
    assert moved.status_code == 200
    assert moved.json()["data"]["parentId"] is None


def test_move_checks_sibling_name_in_target(client: TestClient, auth_headers):
    left = _create_folder(client, auth_headers, "Left")
    right = _create_folder(client, auth_headers, "Right")
    _create_folder(client, auth_headers, "Shared", parent_id=left["id"])
    moving = _create_folder(client, auth_headers, "Shared", parent_id=right["id"])

    response = client.put(f"{FOLDERS_URL}/{moving['id']}", headers=auth_headers, json={"parentId": left["id"]})
    assert response.status_code == 409

    renamed = client.put(
        f"{FOLDERS_URL}/{moving['id']}",
        headers=auth_headers,
        json={"parentId": left["id"], "name": "Shared 2", "sortOrder": 4},
    )
    assert renamed.status_code == 200
    data = renamed.json()["data"]
    assert data["parentId"] == left["id"]
    assert data["name"] == "Shared 2"
    assert data["sortOrder"] == 4


def test_depth_limit_applies_on_create(client: TestClient, auth_headers):
    level1 = _create_folder(client, auth_headers, "L1")
    level2 = _create_folder(client, auth_headers, "L2", parent_id=level1["id"])
    level3 = _create_folder(client, auth_headers, "L3", parent_id=level2["id"])

    response = client.post(FOLDERS_URL, headers=auth_headers, json={"name": "L4", "parentId": level3["id"]})
    assert response.status_code == 400
    assert response.json()["kind"] == "INVALID_PARAMETER"


def test_delete_guard_blocks_non_empty_folders(client: TestClient, auth_headers):
    parent = _create_folder(client, auth_headers, "Parent")
    child = _create_folder(client, auth_headers, "Child", parent_id=parent["id"])

    blocked = client.delete(f"{FOLDERS_URL}/{parent['id']}", headers=auth_headers)
    assert blocked.status_code == 409
    assert blocked.json()["kind"] == "DELETE_FORBIDDEN"
    assert blocked.json()["bizCode"] == 32603

    assert client.delete(f"{FOLDERS_URL}/{child['id']}", headers=auth_headers).status_code == 200
    assert client.delete(f"{FOLDERS_URL}/{parent['id']}", headers=auth_headers).status_code == 200

    missing = client.get(f"{FOLDERS_URL}/{parent['id']}", headers=auth_headers)
    assert missing.status_code == 404


def test_delete_guard_counts_attachments(client: TestClient, auth_headers):
    folder = _create_folder(client, auth_headers, "Holds files")
    upload = client.post(
        "/api/v1/attachments",
        headers=auth_headers,
        params={"folderId": folder["id"]},
        files=[("files", ("doc.txt", b"guarded bytes", "text/plain"))],
    )
    assert upload.status_code == 200
    attachment_id = upload.json()["data"][0]["attachment"]["id"]

    blocked = client.delete(f"{FOLDERS_URL}/{folder['id']}", headers=auth_headers)
    assert blocked.status_code == 409

    assert client.delete(f"/api/v1/attachments/{attachment_id}", headers=auth_headers).status_code == 200
    assert client.delete(f"{FOLDERS_URL}/{folder['id']}", headers=auth_headers).status_code == 200


def test_folder_tree_orders_siblings(client: TestClient, auth_headers):
    root = _create_folder(client, auth_headers, "Library")
    _create_folder(client, auth_headers, "Zeta", parent_id=root["id"], sortOrder=1)
    alpha = _create_folder(client, auth_headers, "Alpha", parent_id=root["id"], sortOrder=2)
    _create_folder(client, auth_headers, "Beta", parent_id=root["id"], sortOrder=1)
    _create_folder(client, auth_headers, "Deep", parent_id=alpha["id"])

    response = client.get(f"{FOLDERS_URL}/tree", headers=auth_headers)
    assert response.status_code == 200
    tree = response.json()["data"]
    library = next(node for node in tree if node["id"] == root["id"])
    assert [child["name"] for child in library["children"]] == ["Zeta", "Beta", "Alpha"]
    assert library["children"][2]["children"][0]["name"] == "Deep"

    subtree = client.get(f"{FOLDERS_URL}/tree", headers=auth_headers, params={"rootId": alpha["id"]})
    assert [node["name"] for node in subtree.json()["data"]] == ["Deep"]


def test_folder_page_filters(client: TestClient, auth_headers):
    root = _create_folder(client, auth_headers, "Gallery", kind="image")
    for index in range(3):
        _create_folder(client, auth_headers, f"Album {index}", parent_id=root["id"], sortOrder=3 - index)
    _create_folder(client, auth_headers, "Sounds", kind="audio", status="disabled")

    children = client.get(FOLDERS_URL, headers=auth_headers, params={"parentId": root["id"], "pageSize": 2})
    payload = children.json()["data"]
    assert payload["total"] == 3
    assert payload["size"] == 2
    assert [item["name"] for item in payload["list"]] == ["Album 2", "Album 1"]

    roots = client.get(FOLDERS_URL, headers=auth_headers, params={"parentId": 0})
    assert {item["name"] for item in roots.json()["data"]["list"]} == {"Gallery", "Sounds"}

    by_kind = client.get(FOLDERS_URL, headers=auth_headers, params={"kind": "audio", "status": "disabled"})
    assert [item["name"] for item in by_kind.json()["data"]["list"]] == ["Sounds"]

    by_keyword = client.get(FOLDERS_URL, headers=auth_headers, params={"keyword": "album", "sortOrder": "desc"})
    assert by_keyword.json()["data"]["total"] == 3
