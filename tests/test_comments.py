import pytest

LIMIT_MESSAGE = "Comment must be between 1 and 200 characters"


def _comment(client, account, movie_id, content="Loved the soundtrack"):
    return client.post("/api/comments", json={"movieId": movie_id, "content": content}, headers=account.headers)


def test_create_comment(client, user, movie):
    resp = _comment(client, user, movie, "  Loved the soundtrack  ")

    assert resp.status_code == 201
    data = resp.get_json()["data"]
    assert data["content"] == "Loved the soundtrack"
    assert data["user"]["id"] == user.id
    assert data["movie"]["id"] == movie


def test_comment_length_boundary(client, user, movie):
    assert _comment(client, user, movie, "x" * 200).status_code == 201

    resp = _comment(client, user, movie, "x" * 201)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == LIMIT_MESSAGE


@pytest.mark.parametrize("content", ["", "   "])
def test_blank_comment_is_rejected(client, user, movie, content):
    resp = _comment(client, user, movie, content)

    assert resp.status_code == 400
    assert resp.get_json()["message"] == LIMIT_MESSAGE


def test_comment_on_missing_movie(client, user):
    resp = _comment(client, user, 404)

    assert resp.status_code == 404
    assert resp.get_json()["message"] == "Movie not found"


def test_public_and_authenticated_movie_listings(client, make_user, movie):
    author = make_user()
    reader = make_user()
    _comment(client, author, movie, "first")
    _comment(client, author, movie, "second")

    public = client.get(f"/api/comments/public/movie/{movie}")
    assert public.status_code == 200
    assert [c["content"] for c in public.get_json()["data"]] == ["second", "first"]
    assert all(c["isOwner"] is False for c in public.get_json()["data"])

    assert client.get(f"/api/comments/movie/{movie}").status_code == 401

    own = client.get(f"/api/comments/public/movie/{movie}", headers=author.headers).get_json()["data"]
    assert all(c["isOwner"] for c in own)

    resp = client.get(f"/api/comments/movie/{movie}", headers=reader.headers)
    assert resp.status_code == 200
    assert resp.get_json()["pagination"]["totalItems"] == 2


def test_my_comments(client, make_user, make_movie):
    me = make_user()
    other = make_user()
    first, second = make_movie(), make_movie()
    _comment(client, me, first)
    _comment(client, me, second)
    _comment(client, other, first)

    resp = client.get("/api/comments/me", headers=me.headers)

    assert resp.status_code == 200
    assert {c["movie"]["id"] for c in resp.get_json()["data"]} == {first, second}
    assert resp.get_json()["pagination"]["totalItems"] == 2


def test_only_owner_can_edit(client, make_user, movie):
    owner = make_user()
    other = make_user()
    comment_id = _comment(client, owner, movie).get_json()["data"]["id"]

    denied = client.put(f"/api/comments/{comment_id}", json={"content": "hijack"}, headers=other.headers)
    assert denied.status_code == 403

    resp = client.put(f"/api/comments/{comment_id}", json={"content": "edited"}, headers=owner.headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["content"] == "edited"


def test_get_comment_owner_or_admin(client, make_user, admin, movie):
    owner = make_user()
    other = make_user()
    comment_id = _comment(client, owner, movie).get_json()["data"]["id"]

    assert client.get(f"/api/comments/{comment_id}", headers=owner.headers).status_code == 200
    assert client.get(f"/api/comments/{comment_id}", headers=admin.headers).status_code == 200
    assert client.get(f"/api/comments/{comment_id}", headers=other.headers).status_code == 403


def test_delete_is_soft_and_hides_comment(client, make_user, movie):
    owner = make_user()
    other = make_user()
    comment_id = _comment(client, owner, movie).get_json()["data"]["id"]

    assert client.delete(f"/api/comments/{comment_id}", headers=other.headers).status_code == 403
    assert client.delete(f"/api/comments/{comment_id}", headers=owner.headers).status_code == 200

    assert client.get(f"/api/comments/{comment_id}", headers=owner.headers).status_code == 404
    listing = client.get(f"/api/comments/public/movie/{movie}").get_json()
    assert listing["data"] == []


def test_admin_and_moderator_can_delete_any_comment(client, make_user, admin, movie):
    owner = make_user()
    moderator = make_user(role="moderator")
    first = _comment(client, owner, movie).get_json()["data"]["id"]
    second = _comment(client, owner, movie).get_json()["data"]["id"]

    assert client.delete(f"/api/comments/{first}", headers=admin.headers).status_code == 200
    assert client.delete(f"/api/comments/{second}", headers=moderator.headers).status_code == 200


def test_list_all_comments_is_admin_only(client, make_user, admin, make_movie):
    author = make_user()
    first, second = make_movie(), make_movie()
    _comment(client, author, first)
    _comment(client, author, second)

    denied = client.get("/api/comments", headers=author.headers)
    assert denied.status_code == 403
    assert denied.get_json()["message"] == "Admin access required"

    resp = client.get(f"/api/comments?movieId={first}", headers=admin.headers)
    assert resp.status_code == 200
    assert [c["movie"]["id"] for c in resp.get_json()["data"]] == [first]
