from typing import Any, Dict, Iterable


def is_member(group: Dict[str, Any], user_id: str) -> bool:
    return user_id in (group.get("members") or [])


def compute_group_stats(groups: Iterable[Dict[str, Any]], user_id: str) -> Dict[str, int]:
    """
    Membership counters over a page of group documents.
    publicGroupsNotJoined is derived, so the counters always add up.
    """
    total = 0
    total_public = 0
    joined = 0
    public_joined = 0

    for group in groups:
        total += 1
        public = bool(group.get("is_public"))
        member = is_member(group, user_id)
        if public:
            total_public += 1
        if member:
            joined += 1
            if public:
                public_joined += 1

    return {
        "totalGroups": total,
        "totalPublicGroups": total_public,
        "userJoinedGroups": joined,
        "publicGroupsJoined": public_joined,
        "publicGroupsNotJoined": total_public - public_joined,
    }
