"""Member and staff tools: registration and lookups."""

import logging
from typing import Optional

from lendchat.prompts import replies
from lendchat.schemas.tool_schema import ToolContext, ToolResult
from lendchat.tools.arguments import (
    CreateMemberArgs,
    GetMemberArgs,
    ListUsersArgs,
    MemberPhoneArgs,
)
from lendchat.tools.dependencies import ToolDependencies
from lendchat.tools.guards import require_phone, require_staff
from lendchat.utils import InvalidPhoneError, mask_phone, to_canonical_phone

logger = logging.getLogger(__name__)


async def create_member(
    deps: ToolDependencies, args: CreateMemberArgs, context: Optional[ToolContext]
) -> ToolResult:
    """Register a member.

    A guest registers themselves, so the phone is the sender's. Staff
    register someone else, so the phone comes from the arguments.
    """
    denied = require_phone(context)
    if denied:
        return denied

    if context.is_staff:
        if not args.phone:
            return ToolResult(success=False, message=replies.MISSING_MEMBER_PHONE)
        try:
            phone = to_canonical_phone(args.phone)
        except InvalidPhoneError:
            return ToolResult(
                success=False, message=replies.INVALID_PHONE.format(phone=args.phone)
            )
    else:
        phone = context.phone

    if not args.referred_by_id:
        return ToolResult(success=False, message=replies.MISSING_REFERRER)

    member = await deps.require("create_member")(
        name=args.name,
        phone=phone,
        id_number=args.id_number,
        collection_point=args.collection_point,
        home_address=args.home_address,
        referred_by_id=args.referred_by_id,
        assigned_collector_id=args.assigned_collector_id,
        job_position=args.job_position,
        income=args.income,
        is_business_owner=args.is_business_owner,
    )
    logger.info("Member created via tool: %s (%s)", member.id, mask_phone(phone))
    return ToolResult(
        success=True,
        message=replies.build_member_registered(member.name),
        data={"member_id": member.id, "name": member.name},
    )


async def list_users(
    deps: ToolDependencies, args: ListUsersArgs, context: Optional[ToolContext]
) -> ToolResult:
    users = await deps.require("list_users")(role=args.role)
    role = args.role.value if args.role else None
    logger.debug("Users listed via tool (role=%s, count=%d)", role, len(users))
    return ToolResult(
        success=True,
        message=replies.build_users_list(users, role),
        data={"users": [u.model_dump(mode="json") for u in users]},
    )


async def get_member(
    deps: ToolDependencies, args: GetMemberArgs, context: Optional[ToolContext]
) -> ToolResult:
    denied = require_staff(context)
    if denied:
        return denied

    member = await deps.require("get_member")(member_id=args.member_id)
    if member is None:
        return ToolResult(
            success=False, message=replies.MEMBER_NOT_FOUND.format(member_id=args.member_id)
        )
    return ToolResult(
        success=True,
        message=replies.MEMBER_FOUND,
        data={"member": member.model_dump(mode="json")},
    )


async def get_member_by_phone(
    deps: ToolDependencies, args: MemberPhoneArgs, context: Optional[ToolContext]
) -> ToolResult:
    denied = require_staff(context)
    if denied:
        return denied

    try:
        phone = to_canonical_phone(args.phone)
    except InvalidPhoneError:
        return ToolResult(success=False, message=replies.INVALID_PHONE.format(phone=args.phone))

    member = await deps.require("get_member_by_phone")(phone=phone)
    if member is None:
        return ToolResult(
            success=False, message=replies.MEMBER_NOT_FOUND_BY_PHONE.format(phone=args.phone)
        )
    logger.debug("Member %s retrieved via tool by phone", member.id)
    return ToolResult(
        success=True,
        message=replies.MEMBER_FOUND,
        data={"member": member.model_dump(mode="json")},
    )
