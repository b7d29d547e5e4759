"""
Dashboard API Router
"""

from fastapi import APIRouter, Depends

from pushdeploy.service.project_service import ProjectService
from pushdeploy.utils.auth.dependencies import get_current_user_id

dashboard_router = APIRouter(prefix="/dashboard", tags=["dashboard"])

project_service = ProjectService()


@dashboard_router.get(
    "/projects",
    summary="Projects owned by or shared with the current user",
    operation_id="get_dashboard_projects"
)
async def dashboard_projects(user_id: str = Depends(get_current_user_id)):
    return await project_service.dashboard(user_id)
