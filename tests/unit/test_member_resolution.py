import asyncio

from conftest import FakeGateway
from core.config.settings import get_settings
from core.profiles.profiles import resolve_members
from core.results.outcome import PARTIAL, SUCCESS


def test_failed_lookup_is_omitted_and_order_kept():
    cloud = FakeGateway(get_settings())
    cloud.add_profile("u1", "Ann")
    cloud.add_profile("u3", "Cid")
    group = {"members": ["u1", "u2", "u3"], "creator_id": "u3"}

    outcome = asyncio.run(resolve_members(cloud, group, concurrency=2))

    assert outcome.status == PARTIAL
    assert outcome.errors == ["u2"]
    assert [m["user_id"] for m in outcome.value] == ["u1", "u3"]
    assert [m["role"] for m in outcome.value] == ["member", "creator"]


def test_unexpected_errors_are_tolerated_too():
    cloud = FakeGateway(get_settings())
    cloud.add_profile("u1", "Ann")
    cloud.databases.fail_get["u2"] = RuntimeError("connection reset")

    outcome = asyncio.run(resolve_members(cloud, {"members": ["u1", "u2"], "creator_id": "u1"}))

    assert [m["name"] for m in outcome.value] == ["Ann"]


def test_all_found():
    cloud = FakeGateway(get_settings())
    cloud.add_profile("u1", "Ann", created_at="2024-03-01T00:00:00+00:00")

    outcome = asyncio.run(resolve_members(cloud, {"members": ["u1"], "creator_id": "u9"}))

    assert outcome.status == SUCCESS
    assert outcome.value == [{
        "id": "u1",
        "user_id": "u1",
        "name": "Ann",
        "email": "u1@example.com",
        "role": "member",
        "joined_at": "2024-03-01T00:00:00+00:00",
    }]
