from harmony.dependencies import create_access_token


COOKIE_NAME = "harmony_refresh_token"


def test_login_success(client, member_user):
    response = client.post("/auth/login", json={
        "email": "member@test.com",
        "password": "secret123",
    })
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert "refresh_token" not in data
    assert data["token_type"] == "bearer"
    assert COOKIE_NAME in response.cookies


def test_login_wrong_password(client, member_user):
    response = client.post("/auth/login", json={
        "email": "member@test.com",
        "password": "wrong",
    })
    assert response.status_code == 401


def test_login_nonexistent_user(client):
    response = client.post("/auth/login", json={
        "email": "nobody@test.com",
        "password": "whatever",
    })
    assert response.status_code == 401


def test_login_inactive_user(client, member_user, db):
    member_user.is_active = False
    db.flush()
    response = client.post("/auth/login", json={
        "email": "member@test.com",
        "password": "secret123",
    })
    assert response.status_code == 401


def test_register(client):
    response = client.post("/auth/register", json={
        "email": "new@test.com",
        "name": "New User",
        "title": "Engineer",
        "password": "newpass123",
    })
    assert response.status_code == 201
    data = response.json()
    assert "access_token" in data
    assert "refresh_token" not in data
    assert COOKIE_NAME in response.cookies

    me = client.get(
        "/users/me",
        headers={"Authorization": f"Bearer {data['access_token']}"},
    )
    assert me.status_code == 200
    assert me.json()["email"] == "new@test.com"
    assert me.json()["title"] == "Engineer"


def test_register_duplicate_email(client, member_user):
    response = client.post("/auth/register", json={
        "email": "member@test.com",
        "name": "Again",
        "password": "pass123",
    })
    assert response.status_code == 409


def test_register_short_password(client):
    response = client.post("/auth/register", json={
        "email": "short@test.com",
        "name": "Short",
        "password": "abc",
    })
    assert response.status_code == 422


def test_refresh_token(client, member_user):
    login = client.post("/auth/login", json={
        "email": "member@test.com",
        "password": "secret123",
    })
    refresh_cookie = login.cookies[COOKIE_NAME]

    response = client.post("/auth/refresh", cookies={COOKIE_NAME: refresh_cookie})
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert "refresh_token" not in data
    # Cookie should be rotated
    assert COOKIE_NAME in response.cookies


def test_refresh_with_access_token_fails(client, member_user):
    token = create_access_token(member_user)
    response = client.post("/auth/refresh", cookies={COOKIE_NAME: token})
    assert response.status_code == 401


def test_refresh_with_invalid_token(client):
    response = client.post("/auth/refresh", cookies={COOKIE_NAME: "garbage"})
    assert response.status_code == 401


def test_refresh_without_cookie(client):
    response = client.post("/auth/refresh")
    assert response.status_code == 401


def test_logout_clears_cookie(client, member_user):
    login = client.post("/auth/login", json={
        "email": "member@test.com",
        "password": "secret123",
    })
    assert COOKIE_NAME in login.cookies

    response = client.post("/auth/logout")
    assert response.status_code == 204
    # Cookie should be set with max-age=0 to delete it
    set_cookie = response.headers.get("set-cookie", "")
    assert COOKIE_NAME in set_cookie
    assert 'Max-Age=0' in set_cookie


def test_refresh_cookie_scoped_to_auth(client, member_user):
    response = client.post("/auth/login", json={
        "email": "member@test.com",
        "password": "secret123",
    })
    set_cookie = response.headers.get("set-cookie", "")
    assert "HttpOnly" in set_cookie
    assert "Path=/auth" in set_cookie
    assert "Max-Age=604800" in set_cookie
