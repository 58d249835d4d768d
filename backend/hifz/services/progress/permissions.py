"""
Capability Checks

One place answering "may this caller do that": group roles, application
roles and statistics visibility. Every operation calls these before any
derivation or write.

Usage:
    from hifz.services.progress.permissions import SUPERVISOR_OR_ADMIN, require_role

    await require_role(db, caller, group_id, SUPERVISOR_OR_ADMIN)
"""

import logging
from typing import Iterable, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hifz.db.models_progress import Group, GroupMember, User
from hifz.enums.progress import GroupRole, UserRole
from hifz.middleware.error_handling import AuthorizationError, NotFoundError

logger = logging.getLogger(__name__)

Role = Union[UserRole, GroupRole]

SUPERVISOR_OR_ADMIN: frozenset[Role] = frozenset({GroupRole.SUPERVISOR, UserRole.ADMIN})
MEMBER_OR_ADMIN: frozenset[Role] = frozenset(
    {GroupRole.MEMBER, GroupRole.SUPERVISOR, UserRole.ADMIN}
)

# Application roles that see every learner's statistics
GLOBAL_VIEWERS = frozenset({UserRole.ADMIN, UserRole.MANAGER})


def is_admin(user: User) -> bool:
    return user.role == UserRole.ADMIN.value


async def get_user(db: AsyncSession, user_id: int) -> User:
    """
    Raises:
        NotFoundError: If no such user exists.
    """
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError(f"Learner {user_id} not found", details={"learner_id": user_id})
    return user


async def get_group(db: AsyncSession, group_id: int) -> Group:
    """
    Raises:
        NotFoundError: If no such group exists.
    """
    group = await db.get(Group, group_id)
    if group is None:
        raise NotFoundError(f"Group {group_id} not found", details={"group_id": group_id})
    return group


async def group_role(db: AsyncSession, group_id: int, user_id: int) -> Optional[GroupRole]:
    """Role of a user inside a group, None when not a member."""
    result = await db.execute(
        select(GroupMember.role).where(
            GroupMember.group_id == group_id,
            GroupMember.user_id == user_id,
        )
    )
    role = result.scalar_one_or_none()
    return GroupRole(role) if role is not None else None


async def require_role(
    db: AsyncSession,
    caller: User,
    group_id: int,
    roles: Iterable[Role],
) -> None:
    """
    Ensure the caller holds one of the roles, application-wide or in the group.

    Raises:
        NotFoundError: If the group does not exist.
        AuthorizationError: If the caller holds none of the roles.
    """
    roles = frozenset(roles)
    await get_group(db, group_id)

    if UserRole(caller.role) in roles:
        return
    role = await group_role(db, group_id, caller.id)
    if role is not None and role in roles:
        return

    logger.warning(f"User {caller.id} denied on group {group_id}, needs one of {sorted(roles)}")
    raise AuthorizationError(
        "Insufficient role for this group",
        details={"group_id": group_id, "required": sorted(r.value for r in roles)},
    )


async def can_view_learner(db: AsyncSession, caller: User, learner: User) -> bool:
    """
    Whether the caller may read a learner's statistics and profile.

    Allowed for the learner themselves, administrators and managers, a
    supervisor of any group the learner belongs to, and fellow members of a
    shared group unless the learner keeps their statistics private.
    """
    if caller.id == learner.id or UserRole(caller.role) in GLOBAL_VIEWERS:
        return True

    result = await db.execute(
        select(GroupMember.group_id, GroupMember.role).where(GroupMember.user_id == caller.id)
    )
    caller_roles = {group_id: GroupRole(role) for group_id, role in result.all()}
    if not caller_roles:
        return False

    result = await db.execute(
        select(GroupMember.group_id).where(
            GroupMember.user_id == learner.id,
            GroupMember.group_id.in_(list(caller_roles)),
        )
    )
    shared = [group_id for (group_id,) in result.all()]
    if any(caller_roles[group_id] == GroupRole.SUPERVISOR for group_id in shared):
        return True
    return bool(shared) and not learner.private_stats


async def require_visibility(db: AsyncSession, caller: User, learner_id: int) -> User:
    """
    Resolve the learner and ensure the caller may see their data.

    Raises:
        NotFoundError: If the learner does not exist.
        AuthorizationError: If the caller has no visibility grant.
    """
    learner = await get_user(db, learner_id)
    if not await can_view_learner(db, caller, learner):
        raise AuthorizationError(
            "Not allowed to view this learner", details={"learner_id": learner_id}
        )
    return learner
