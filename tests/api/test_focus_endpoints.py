from conftest import session_cookie


def _profile_minutes(cloud, user_id):
    return cloud.databases.collections["user_profiles"][user_id].get("totalStudyMinutes")


def test_create_session_credits_profile(client, cloud):
    cloud.add_profile("user-a", "Ann", totalStudyMinutes=10)

    response = client.post(
        "/focus/sessions",
        json={"duration": 25, "completedMinutes": 25, "isCompleted": True},
        headers=session_cookie("user-a"),
    )

    assert response.status_code == 201
    body = response.json()
    assert body["backgroundId"] == "creative_flow"
    assert body["isCompleted"] is True
    assert _profile_minutes(cloud, "user-a") == 35
    assert cloud.databases.collections["focus_sessions"][body["id"]]["userId"] == "user-a"


def test_create_session_without_profile_still_saves(client, cloud):
    response = client.post("/focus/sessions", json={"duration": 25, "completedMinutes": 5}, headers=session_cookie())

    assert response.status_code == 201
    assert len(cloud.databases.collections["focus_sessions"]) == 1


def test_create_session_validation(client):
    response = client.post("/focus/sessions", json={"duration": 25}, headers=session_cookie())

    assert response.status_code == 400
    assert response.json() == {"detail": "Duration and completedMinutes are required"}


def test_update_credits_only_the_increase(client, cloud):
    cloud.add_profile("user-a", "Ann", totalStudyMinutes=0)
    cloud.databases.seed("focus_sessions", {
        "$id": "fs1", "userId": "user-a", "duration": 50, "completedMinutes": 20, "isCompleted": False,
    })

    response = client.patch(
        "/focus/sessions", json={"sessionId": "fs1", "completedMinutes": 30}, headers=session_cookie("user-a"),
    )

    assert response.status_code == 200
    assert response.json()["completedMinutes"] == 30
    assert response.json()["isCompleted"] is False
    assert _profile_minutes(cloud, "user-a") == 10


def test_update_other_users_session_is_forbidden(client, cloud):
    cloud.databases.seed("focus_sessions", {"$id": "fs1", "userId": "user-a", "completedMinutes": 5})

    response = client.patch(
        "/focus/sessions", json={"sessionId": "fs1", "completedMinutes": 50}, headers=session_cookie("user-b"),
    )

    assert response.status_code == 403
    assert cloud.databases.collections["focus_sessions"]["fs1"]["completedMinutes"] == 5


def test_update_missing_session(client):
    response = client.patch(
        "/focus/sessions", json={"sessionId": "nope", "completedMinutes": 5}, headers=session_cookie(),
    )

    assert response.status_code == 404
    assert response.json() == {"detail": "Focus session not found"}


def test_list_sessions(client, cloud):
    cloud.databases.seed("focus_sessions", {"$id": "fs1", "userId": "user-a", "duration": 25, "completedMinutes": 25})

    response = client.get("/focus/sessions", headers=session_cookie("user-a"))

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["sessions"][0]["id"] == "fs1"


def test_focus_requires_session(client):
    assert client.get("/focus/sessions").status_code == 401
