from datetime import datetime, timezone
from typing import Any, Dict

SYSTEM_SENDER_ID = "system"
SYSTEM_SENDER_NAME = "System"


def system_message_content(event_type: str, user_name: str) -> str:
    if event_type == "join":
        return f"{user_name} joined the group"
    if event_type == "leave":
        return f"{user_name} left the group"
    return f"{user_name} {event_type}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def build_system_message(group_id: str, event_type: str, user_id: str, user_name: str) -> Dict[str, Any]:
    """Document data for a platform-authored membership event."""
    return {
        "content": system_message_content(event_type, user_name),
        "group_id": group_id,
        "sender_id": SYSTEM_SENDER_ID,
        "sender_name": SYSTEM_SENDER_NAME,
        "timestamp": utc_now_iso(),
        "is_system_message": True,
        "system_message_type": event_type,
        "system_message_user": user_id,
    }
