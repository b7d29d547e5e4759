"""
Project API Router

Routes only; the logic lives in ProjectService.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query

from pushdeploy.db.schemas import EnvVarBulk, EnvVarDelete, EnvVarSet, ProjectCreate
from pushdeploy.service.project_service import ProjectService
from pushdeploy.utils.auth.dependencies import get_current_user_id

project_router = APIRouter(prefix="/project", tags=["projects"])

project_service = ProjectService()

OWNER = Path(..., description="Owner username")
PROJECT = Path(..., description="Project name")


@project_router.post(
    "/new",
    summary="Create a project",
    operation_id="create_project",
    status_code=201,
)
async def create_project(data: ProjectCreate, user_id: str = Depends(get_current_user_id)):
    """
    Create the project, its repository and its git credentials

    The git password is in this response only.
    """
    return await project_service.create_project(user_id, data)


@project_router.get(
    "/{owner}/{project}/access",
    summary="Check project access",
    operation_id="check_project_access"
)
async def check_access(owner: str = OWNER, project: str = PROJECT, user_id: str = Depends(get_current_user_id)):
    return await project_service.check_access(owner, project, user_id)


@project_router.get(
    "/{owner}/{project}/builds",
    summary="List builds",
    operation_id="list_builds"
)
async def list_builds(
    owner: str = OWNER,
    project: str = PROJECT,
    limit: int = Query(50, ge=1, le=200, description="Maximum number of builds"),
    user_id: str = Depends(get_current_user_id),
):
    """Builds of the project, newest first"""
    return await project_service.list_builds(owner, project, user_id, limit=limit)


@project_router.get(
    "/{owner}/{project}/builds/{build_id}",
    summary="Get a build and its log",
    operation_id="get_build"
)
async def get_build(
    owner: str = OWNER,
    project: str = PROJECT,
    build_id: str = Path(..., description="Build ID"),
    user_id: str = Depends(get_current_user_id),
):
    return await project_service.get_build(owner, project, build_id, user_id)


@project_router.get(
    "/{owner}/{project}/status",
    summary="Latest build status",
    operation_id="get_project_status"
)
async def get_status(owner: str = OWNER, project: str = PROJECT):
    return await project_service.get_status(owner, project)


@project_router.get(
    "/{owner}/{project}/tree",
    summary="List a repository directory",
    operation_id="view_project_tree"
)
async def view_tree(
    owner: str = OWNER,
    project: str = PROJECT,
    ref: Optional[str] = Query(None, description="Branch, tag or commit; default branch if omitted"),
    path: Optional[str] = Query(None, description="Directory path, repository root if omitted"),
    user_id: str = Depends(get_current_user_id),
):
    """Immediate children of one directory, directories first"""
    return await project_service.get_tree(owner, project, user_id, ref=ref, path=path)


@project_router.get(
    "/{owner}/{project}/env",
    summary="List environment variables",
    operation_id="view_project_environ"
)
async def list_env(owner: str = OWNER, project: str = PROJECT, user_id: str = Depends(get_current_user_id)):
    return await project_service.list_env(owner, project, user_id)


@project_router.post(
    "/{owner}/{project}/env",
    summary="Set an environment variable",
    operation_id="update_project_environ"
)
async def set_env(data: EnvVarSet, owner: str = OWNER, project: str = PROJECT, user_id: str = Depends(get_current_user_id)):
    return await project_service.set_env(owner, project, user_id, data)


@project_router.post(
    "/{owner}/{project}/env/delete",
    summary="Delete an environment variable",
    operation_id="delete_project_environ"
)
async def delete_env(data: EnvVarDelete, owner: str = OWNER, project: str = PROJECT, user_id: str = Depends(get_current_user_id)):
    return await project_service.delete_env(owner, project, user_id, data)


@project_router.post(
    "/{owner}/{project}/env/bulk",
    summary="Replace all environment variables",
    operation_id="bulk_update_project_environ"
)
async def bulk_env(data: EnvVarBulk, owner: str = OWNER, project: str = PROJECT, user_id: str = Depends(get_current_user_id)):
    return await project_service.bulk_env(owner, project, user_id, data)


@project_router.get(
    "/{owner}/{project}/git-credentials",
    summary="Git credentials (redacted)",
    operation_id="get_git_credentials"
)
async def get_git_credentials(owner: str = OWNER, project: str = PROJECT, user_id: str = Depends(get_current_user_id)):
    return await project_service.get_git_credentials(owner, project, user_id)


@project_router.post(
    "/{owner}/{project}/regenerate-git-password",
    summary="Regenerate the git password",
    operation_id="regenerate_git_password"
)
async def regenerate_git_password(owner: str = OWNER, project: str = PROJECT, user_id: str = Depends(get_current_user_id)):
    """The previous password stops working immediately"""
    return await project_service.regenerate_git_password(owner, project, user_id)


@project_router.post(
    "/{owner}/{project}/delete",
    summary="Delete a project",
    operation_id="delete_project"
)
async def delete_project(owner: str = OWNER, project: str = PROJECT, user_id: str = Depends(get_current_user_id)):
    """Stops the running instance and removes the repository, builds and settings"""
    return await project_service.delete_project(owner, project, user_id)
