def test_list_users_excludes_caller(client, member_user, member_headers, peer_user, third_user):
    response = client.get("/users", headers=member_headers)
    assert response.status_code == 200
    ids = [u["id"] for u in response.json()]
    assert member_user.id not in ids
    assert peer_user.id in ids
    assert third_user.id in ids


def test_list_users_excludes_inactive(client, member_headers, peer_user, db):
    peer_user.is_active = False
    db.flush()

    response = client.get("/users", headers=member_headers)
    assert response.status_code == 200
    assert peer_user.id not in [u["id"] for u in response.json()]


def test_list_users_unauthenticated(client):
    response = client.get("/users")
    assert response.status_code == 401


def test_list_users_bad_token(client):
    response = client.get("/users", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


def test_get_me(client, member_user, member_headers):
    response = client.get("/users/me", headers=member_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["id"] == member_user.id
    assert data["is_active"] is True
    assert "role" not in data


def test_get_user(client, member_headers, peer_user):
    response = client.get(f"/users/{peer_user.id}", headers=member_headers)
    assert response.status_code == 200
    assert response.json() == {
        "id": peer_user.id,
        "name": "Peer",
        "email": "peer@test.com",
        "title": None,
    }


def test_get_user_not_found(client, member_headers):
    response = client.get("/users/99999", headers=member_headers)
    assert response.status_code == 404
