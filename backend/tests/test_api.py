import pytest
from fastapi.testclient import TestClient

from deps import get_services
from main import app


@pytest.fixture()
def api(services):
    # no context manager: the startup hook would try to reach MongoDB
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


def _register(api, name, email, role="trainee"):
    resp = api.post("/auth/register", json={"name": name, "email": email, "password": "pw", "role": role})
    assert resp.status_code == 201, resp.text
    body = resp.json()
    return body["id"], {"Authorization": f"Bearer {body['access_token']}"}


def test_root(api):
    assert api.get("/").json() == {"message": "RepTrack API is running"}


def test_register_login_and_me(api):
    user_id, _ = _register(api, "Ana", "ana@example.com")

    assert api.post("/auth/register", json={"name": "x", "email": "ana@example.com", "password": "pw"}).status_code == 400
    assert api.post("/auth/login", json={"email": "ana@example.com", "password": "bad"}).status_code == 403

    login = api.post("/auth/login", json={"email": "ana@example.com", "password": "pw"})
    assert login.status_code == 200
    headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    me = api.get("/me", headers=headers).json()
    assert me["id"] == user_id
    assert "password_hash" not in me


def test_protected_routes_need_token(api):
    assert api.get("/me").status_code == 401
    assert api.get("/me", headers={"Authorization": "Bearer nonsense"}).status_code == 401


def test_trainer_program_flow(api):
    _, trainer = _register(api, "Tina", "tina@example.com", role="trainer")
    trainee_id, trainee = _register(api, "Tom", "tom@example.com")

    assert api.post("/programs", json={"name": "Nope"}, headers=trainee).status_code == 403

    program_id = api.post("/programs", json={"name": "Strength", "description": "5x5"}, headers=trainer).json()["id"]
    resp = api.post(f"/programs/{program_id}/exercises", json={"name": "Squat", "sets": 5, "reps": 5}, headers=trainer)
    assert resp.status_code == 201
    assert api.post(f"/programs/{program_id}/exercises", json={"name": "x"}, headers=trainee).status_code == 403

    [exercise] = api.get(f"/programs/{program_id}/exercises").json()
    assert exercise["restTime"] == 0

    plan_id = api.post(f"/programs/{program_id}/join", headers=trainee).json()["id"]
    [plan] = api.get("/workout-plans", headers=trainee).json()
    assert plan["id"] == plan_id
    assert plan["creatorId"] == trainee_id
    assert plan["days"][0]["exerciseIds"] == [exercise["id"]]

    assert api.put(f"/programs/{program_id}", json={"name": "Strength II"}, headers=trainer).status_code == 200
    assert api.get(f"/programs/{program_id}").json()["name"] == "Strength II"
    assert api.delete(f"/programs/{program_id}", headers=trainer).status_code == 200
    assert api.get(f"/programs/{program_id}").status_code == 404


def test_progress_defaults_date_and_filters(api):
    _, headers = _register(api, "Ana", "ana@example.com")

    api.post("/progress", json={"exerciseId": "e1", "weight": 100, "repsDone": 5, "date": 1000}, headers=headers)
    api.post("/progress", json={"exerciseId": "e2", "weight": 50, "repsDone": 8}, headers=headers)

    logs = api.get("/progress", headers=headers).json()
    assert [log["exerciseId"] for log in logs] == ["e2", "e1"]
    assert logs[0]["date"] > 1000
    assert len(api.get("/progress", params={"exercise_id": "e1"}, headers=headers).json()) == 1


def test_social_flow(api):
    alice_id, alice = _register(api, "Alice", "alice@example.com")
    _, bob = _register(api, "Bob", "bob@example.com")

    post_id = api.post("/posts", json={"content": "PR today"}, headers=alice).json()["id"]

    assert api.post(f"/posts/{post_id}/like", headers=bob).status_code == 200
    assert api.post(f"/posts/{post_id}/like", headers=bob).status_code == 200
    assert api.get(f"/posts/{post_id}/like", headers=bob).json() == {"liked": True, "count": 1}

    resp = api.post(f"/posts/{post_id}/comments", json={"content": "Huge"}, headers=bob)
    assert resp.status_code == 201
    assert api.post("/posts/missing/comments", json={"content": "?"}, headers=bob).status_code == 404

    post = api.get(f"/posts/{post_id}").json()
    assert post["userName"] == "Alice"
    assert post["likeCount"] == 1
    assert post["commentCount"] == 1

    notifications = api.get("/notifications", headers=alice).json()
    assert sorted(n["type"] for n in notifications) == ["comment", "like"]
    assert api.get("/notifications/unread-count", headers=alice).json() == {"count": 2}
    assert api.post("/notifications/read-all", headers=alice).json() == {"updated": 2}
    assert api.get("/notifications/unread-count", headers=alice).json() == {"count": 0}

    assert api.delete(f"/posts/{post_id}", headers=bob).status_code == 403

    assert api.post(f"/follow/{alice_id}", headers=bob).json() == {"following": True}
    assert api.get(f"/users/{alice_id}/followers/count").json() == {"count": 1}
    [followed_post] = api.get("/feed/following", headers=bob).json()
    assert followed_post["id"] == post_id
    assert api.post(f"/follow/{alice_id}", headers=alice).status_code == 400


def test_feed_pages_with_cursor(api, client):
    for i in range(3):
        client.collections["posts"][f"p{i}"] = {"id": f"p{i}", "userId": "u", "timestamp": 100 + i}

    first = api.get("/feed", params={"limit": 2}).json()
    assert [p["id"] for p in first["items"]] == ["p2", "p1"]
    assert first["maybeMore"] is True

    second = api.get("/feed", params={"limit": 2, "cursor": first["nextCursor"]}).json()
    assert [p["id"] for p in second["items"]] == ["p0"]
    assert second["maybeMore"] is False

    assert api.get("/feed", params={"cursor": "%%%"}).status_code == 400


def test_store_outage_maps_to_503(api, client):
    client.offline = True
    assert api.get("/workout-plans/all").status_code == 503


def test_notifications_belong_to_their_recipient(api):
    _, alice = _register(api, "Alice", "alice@example.com")
    _, bob = _register(api, "Bob", "bob@example.com")
    _, mallory = _register(api, "Mallory", "mallory@example.com")
    post_id = api.post("/posts", json={"content": "PR today"}, headers=alice).json()["id"]
    api.post(f"/posts/{post_id}/like", headers=bob)
    [notification] = api.get("/notifications", headers=alice).json()

    assert api.post(f"/notifications/{notification['id']}/read", headers=mallory).status_code == 403
    assert api.delete(f"/notifications/{notification['id']}", headers=mallory).status_code == 403
    assert api.get("/notifications/unread-count", headers=alice).json() == {"count": 1}

    assert api.post(f"/notifications/{notification['id']}/read", headers=alice).status_code == 200
    assert api.delete(f"/notifications/{notification['id']}", headers=alice).status_code == 204
    assert api.get("/notifications", headers=alice).json() == []


def test_comment_delete_through_wrong_post_is_404(api):
    _, alice = _register(api, "Alice", "alice@example.com")
    _, bob = _register(api, "Bob", "bob@example.com")
    p1 = api.post("/posts", json={"content": "one"}, headers=alice).json()["id"]
    p2 = api.post("/posts", json={"content": "two"}, headers=alice).json()["id"]
    comment_id = api.post(f"/posts/{p1}/comments", json={"content": "hi"}, headers=bob).json()["id"]

    assert api.delete(f"/posts/{p2}/comments/{comment_id}", headers=bob).status_code == 404
    assert api.get(f"/posts/{p1}").json()["commentCount"] == 1


def test_list_every_exercise(api):
    _, trainer = _register(api, "Tina", "tina@example.com", role="trainer")
    for name in ("Push", "Pull"):
        program_id = api.post("/programs", json={"name": name}, headers=trainer).json()["id"]
        api.post(f"/programs/{program_id}/exercises", json={"name": f"{name} move"}, headers=trainer)

    exercises = api.get("/exercises").json()

    assert sorted(e["name"] for e in exercises) == ["Pull move", "Push move"]
