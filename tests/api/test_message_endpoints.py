from appwrite.query import Query as AppwriteQuery

from conftest import session_cookie


def test_system_message_join(client, cloud):
    response = client.post("/groups/g1/system-message", json={"type": "join", "userId": "user-a", "userName": "Ann"})

    assert response.status_code == 200
    body = response.json()
    assert body["content"] == "Ann joined the group"
    assert body["group_id"] == "g1"
    assert body["sender_id"] == "system"
    assert body["sender_name"] == "System"
    assert body["is_system_message"] is True
    assert body["system_message_type"] == "join"
    assert set(body) == {
        "id", "content", "group_id", "sender_id", "sender_name",
        "timestamp", "is_system_message", "system_message_type",
    }
    assert cloud.messages()[0]["system_message_user"] == "user-a"


def test_system_message_passthrough_type(client):
    response = client.post("/groups/g1/system-message", json={"type": "shared a file", "userName": "Ann"})

    assert response.json()["content"] == "Ann shared a file"


def test_list_messages_member_only(client, cloud):
    cloud.add_group("g1", ["owner"])

    response = client.get("/groups/g1/messages", headers=session_cookie("user-a"))

    assert response.status_code == 403
    assert response.json() == {"detail": "Not a member of this group"}


def test_list_messages(client, cloud):
    cloud.add_group("g1", ["user-a"])
    cloud.databases.seed("messages", {
        "$id": "m1", "content": "hello", "group_id": "g1", "sender_id": "user-a",
        "sender_name": "Ann", "timestamp": "2024-01-01T00:00:00+00:00",
    })

    response = client.get("/groups/g1/messages", params={"limit": 10}, headers=session_cookie("user-a"))

    assert response.status_code == 200
    assert response.json() == [{
        "id": "m1",
        "content": "hello",
        "group_id": "g1",
        "sender_id": "user-a",
        "sender_name": "Ann",
        "timestamp": "2024-01-01T00:00:00+00:00",
        "is_system_message": False,
    }]
    queries = cloud.databases.list_calls[-1]["queries"]
    assert AppwriteQuery.order_asc("timestamp") in queries
    assert AppwriteQuery.limit(10) in queries


def test_send_message(client, cloud):
    cloud.add_group("g1", ["user-a"])
    cloud.add_profile("user-a", "Ann")

    response = client.post("/groups/g1/messages", json={"content": "  hi all "}, headers=session_cookie("user-a"))

    assert response.status_code == 200
    assert response.json()["content"] == "hi all"
    assert response.json()["sender_name"] == "Ann"


def test_send_message_validation(client, cloud):
    cloud.add_group("g1", ["user-a"])

    empty = client.post("/groups/g1/messages", json={"content": "   "}, headers=session_cookie("user-a"))
    too_long = client.post("/groups/g1/messages", json={"content": "x" * 1001}, headers=session_cookie("user-a"))

    assert empty.json()["detail"] == "Message content is required"
    assert too_long.json()["detail"] == "Message must be less than 1000 characters"


def test_send_message_missing_group(client):
    response = client.post("/groups/nope/messages", json={"content": "hi"}, headers=session_cookie("user-a"))

    assert response.status_code == 404
    assert response.json() == {"detail": "Group not found"}


# --- caller's message stats ---

def test_my_message_stats(client, cloud):
    cloud.add_group("g1", ["user-a", "owner"])
    cloud.add_group("g2", ["user-a"])
    cloud.add_group("g3", ["owner"])
    for i in range(3):
        cloud.databases.seed("messages", {"$id": f"m{i}", "group_id": "g1", "sender_id": "user-a"})

    response = client.get("/users/me/messages/stats", headers=session_cookie("user-a"))

    assert response.status_code == 200
    assert response.json() == {
        "messagesSent": 3,
        "groupsJoined": 2,
        "total_messages": 3,
        "groups_joined": 2,
        "active_conversations": 2,
    }
    message_queries = [c["queries"] for c in cloud.databases.list_calls if c["collection_id"] == "messages"]
    assert AppwriteQuery.equal("sender_id", "user-a") in message_queries[0]


def test_my_message_stats_requires_session(client):
    assert client.get("/users/me/messages/stats").status_code == 401
