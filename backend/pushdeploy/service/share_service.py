"""
Share Service

Project membership. Members get read access, builds, environment and the
terminal; only the owner invites and removes them.
"""

import logging

from pushdeploy.config.logging_config import log_print
from pushdeploy.db.repository import ProjectRepository, ShareRepository, UserRepository
from pushdeploy.db.schemas import InviteRequest, MembersResponse, ShareResponse
from pushdeploy.service.access import ProjectAccess
from pushdeploy.utils.exceptions import NotFoundError, ValidationException
from pushdeploy.utils.model.response_model import BaseResponse

logger = logging.getLogger(__name__)


class ShareService:

    def __init__(self):
        self.user_repo = UserRepository()
        self.share_repo = ShareRepository()
        self.access = ProjectAccess(ProjectRepository())

    @log_print
    async def list_members(self, owner: str, name: str, user_id: str) -> MembersResponse:
        project = await self.access.require_member(owner, name, user_id)
        members = await self.share_repo.list_members(project.id)
        return MembersResponse(shares=[
            ShareResponse(user_id=user.id, username=user.username, name=user.name, created_at=share.created_at)
            for share, user in members
        ])

    @log_print
    async def invite(self, owner: str, name: str, user_id: str, data: InviteRequest):
        """Share the project with a user; inviting an existing member is a no-op"""
        project = await self.access.require_owner(owner, name, user_id)
        invitee = await self.user_repo.get_by_username(data.username)
        if invitee is None:
            raise NotFoundError(f"User '{data.username}' not found", resource_type="user")
        if invitee.id == project.owner_id:
            raise ValidationException("The owner already has access")

        added = await self.share_repo.add_member(project.id, invitee.id)
        if added:
            logger.info(f"Shared {project.full_name} with {invitee.username}")
            return BaseResponse.success(message=f"{invitee.username} invited")
        return BaseResponse.success(message=f"{invitee.username} is already a member")

    @log_print
    async def remove(self, owner: str, name: str, user_id: str, member_id: str):
        """Revoke a membership; removing a non-member succeeds as well"""
        project = await self.access.require_owner(owner, name, user_id)
        removed = await self.share_repo.remove_member(project.id, member_id)
        if removed:
            logger.info(f"Removed member {member_id} from {project.full_name}")
        return BaseResponse.success(message="Member removed" if removed else "Not a member")
