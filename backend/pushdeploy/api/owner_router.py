"""
Owner API Router

Project membership management.
"""

from fastapi import APIRouter, Depends, Path

from pushdeploy.db.schemas import InviteRequest
from pushdeploy.service.share_service import ShareService
from pushdeploy.utils.auth.dependencies import get_current_user_id

owner_router = APIRouter(prefix="/owner", tags=["owner"])

share_service = ShareService()


@owner_router.get(
    "/{owner}/{project}/members",
    summary="List project members",
    operation_id="get_project_members"
)
async def list_members(owner: str = Path(...), project: str = Path(...), user_id: str = Depends(get_current_user_id)):
    return await share_service.list_members(owner, project, user_id)


@owner_router.post(
    "/{owner}/{project}/invite",
    summary="Share a project with a user",
    operation_id="invite_project_member"
)
async def invite(data: InviteRequest, owner: str = Path(...), project: str = Path(...), user_id: str = Depends(get_current_user_id)):
    return await share_service.invite(owner, project, user_id, data)


@owner_router.post(
    "/{owner}/{project}/remove/{member_id}",
    summary="Remove a project member",
    operation_id="remove_project_member"
)
async def remove(
    owner: str = Path(...),
    project: str = Path(...),
    member_id: str = Path(..., description="User ID of the member"),
    user_id: str = Depends(get_current_user_id),
):
    return await share_service.remove(owner, project, user_id, member_id)
