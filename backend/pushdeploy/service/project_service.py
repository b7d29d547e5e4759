"""
Project Service

Project lifecycle, builds, repository browsing, environment variables and
git credentials.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from pushdeploy.config.logging_config import log_print
from pushdeploy.config.settings import GitConfig
from pushdeploy.core.deployer import hostname_for, project_slug
from pushdeploy.core.terminal import CLOSE_NORMAL
from pushdeploy.db.models.deployment import DeploymentStatus
from pushdeploy.db.repository import (
    BuildRepository,
    DeploymentRepository,
    EnvironRepository,
    ProjectRepository,
    UserRepository,
)
from pushdeploy.db.schemas import (
    BuildDetail,
    BuildSummary,
    DashboardProject,
    EnvVarBulk,
    EnvVarDelete,
    EnvVarList,
    EnvVarResponse,
    EnvVarSet,
    GitCredentialsResponse,
    ProjectCreate,
    ProjectCreated,
    ProjectStatus,
    TreeResponse,
)
from pushdeploy.service.access import ProjectAccess
from pushdeploy.service.platform import Platform, get_platform
from pushdeploy.utils.exceptions import AuthenticationError, ConflictError, NotFoundError
from pushdeploy.utils.model.response_model import BaseResponse

logger = logging.getLogger(__name__)

PASSWORD_NOTICE = "Store this password now, it will not be shown again"


def git_url_for(owner: str, name: str) -> str:
    return f"{GitConfig.PUBLIC_URL.rstrip('/')}/git/{owner}/{name}.git"


class ProjectService:
    """
    Project service

    Read operations are open to the owner and share members; deletion and
    credential management are reserved to the owner.
    """

    def __init__(self, platform: Optional[Platform] = None):
        self._platform = platform
        self.user_repo = UserRepository()
        self.project_repo = ProjectRepository()
        self.build_repo = BuildRepository()
        self.deployment_repo = DeploymentRepository()
        self.environ_repo = EnvironRepository()
        self.access = ProjectAccess(self.project_repo)

    @property
    def platform(self) -> Platform:
        return self._platform or get_platform()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_project(self, user_id: str, data: ProjectCreate):
        """
        Create the project row, its bare repository and its git credentials

        The response is the only place the git password is ever shown.
        """
        user = await self.user_repo.get_user(user_id)
        if user is None:
            raise AuthenticationError("Unknown user")

        if await self.project_repo.get_project(user.username, data.name):
            raise ConflictError(f"Project {user.username}/{data.name} already exists")
        if self.platform.repositories.exists(user.username, data.name):
            raise ConflictError(f"Repository {user.username}/{data.name} already exists")
        slug = project_slug(user.username, data.name)
        taken = await self.project_repo.get_by_slug(slug)
        if taken:
            raise ConflictError(f"Hostname {hostname_for(slug)} is already used by {taken.full_name}")

        try:
            project = await self.project_repo.create_project(user.id, user.username, data.name, slug)
        except IntegrityError:
            raise ConflictError(f"Project {user.username}/{data.name} or its hostname already exists")

        try:
            await self.platform.repositories.create(project.owner, project.name)
            git_username, git_password = await self.platform.credentials.issue(project)
        except Exception:
            logger.error(f"Creating {project.full_name} failed, rolling back", exc_info=True)
            await self.project_repo.delete_project(project.id)
            await self.platform.repositories.delete(project.owner, project.name)
            raise

        logger.info(f"Created project {project.full_name}")
        created = ProjectCreated(
            id=project.id,
            owner=project.owner,
            name=project.name,
            create_time=project.create_time,
            git_url=git_url_for(project.owner, project.name),
            git_username=git_username,
            git_password=git_password,
            hostname=hostname_for(project.slug),
        )
        return BaseResponse.created(data=created, message=PASSWORD_NOTICE)

    @log_print
    async def delete_project(self, owner: str, name: str, user_id: str):
        """Stop builds and the instance, then drop the rows and the repository"""
        project = await self.access.require_owner(owner, name, user_id)

        await self.platform.orchestrator.cancel_project(project.id)
        await self.platform.terminals.close_project(project.id, CLOSE_NORMAL, "project deleted")
        await self.platform.deployer.teardown(project)
        await self.project_repo.delete_project(project.id)
        await self.platform.repositories.delete(project.owner, project.name)

        logger.info(f"Deleted project {project.full_name}")
        return BaseResponse.success(message=f"Project {project.full_name} deleted")

    @log_print
    async def check_access(self, owner: str, name: str, user_id: str):
        await self.access.require_member(owner, name, user_id)
        return {"has_access": True}

    @log_print
    async def dashboard(self, user_id: str):
        """Projects the user owns followed by the ones shared with them"""
        owned = await self.project_repo.list_owned(user_id)
        shared = await self.project_repo.list_shared(user_id)

        rows = []
        for project, is_owner in [(p, True) for p in owned] + [(p, False) for p in shared]:
            latest = await self.build_repo.latest_build(project.id)
            active = await self.deployment_repo.get_active(project.id)
            rows.append(DashboardProject(
                id=project.id,
                owner=project.owner,
                name=project.name,
                create_time=project.create_time,
                is_owner=is_owner,
                latest_build_status=latest.status.value if latest else None,
                hostname=active.hostname if active else None,
            ))
        return BaseResponse.success(data=rows)

    # ------------------------------------------------------------------
    # Builds
    # ------------------------------------------------------------------

    @log_print
    async def list_builds(self, owner: str, name: str, user_id: str, limit: int = 50):
        project = await self.access.require_member(owner, name, user_id)
        builds = await self.build_repo.list_builds(project.id, limit=limit)
        return BaseResponse.success(data=[BuildSummary.model_validate(b) for b in builds])

    async def get_build(self, owner: str, name: str, build_id: str, user_id: str):
        """Build detail; a running build serves its in-memory log"""
        project = await self.access.require_member(owner, name, user_id)
        build = await self.build_repo.get_build(build_id)
        if build is None or build.project_id != project.id:
            raise NotFoundError(f"Build {build_id} not found", resource_type="build")

        live = self.platform.orchestrator.live_log(build.id)
        detail = BuildDetail(
            id=build.id,
            status=build.status,
            commit_sha=build.commit_sha,
            ref=build.ref,
            image_tag=build.image_tag,
            error_message=build.error_message,
            created_at=build.create_time,
            started_at=build.started_at,
            finished_at=build.finished_at,
            log=live if live is not None else (build.log or ""),
        )
        return BaseResponse.success(data=detail)

    @log_print
    async def get_status(self, owner: str, name: str):
        """Latest build and deployment state; readable without login"""
        project = await self.access.resolve(owner, name)
        latest = await self.build_repo.latest_build(project.id)
        if latest is None:
            raise NotFoundError(f"{project.full_name} has no builds yet", resource_type="build")

        active = await self.deployment_repo.get_active(project.id)
        status = ProjectStatus(
            build=BuildSummary.model_validate(latest),
            deployment_status=active.status.value if active else None,
            hostname=active.hostname if active and active.status == DeploymentStatus.ACTIVE else None,
        )
        return BaseResponse.success(data=status)

    # ------------------------------------------------------------------
    # Repository
    # ------------------------------------------------------------------

    async def get_tree(self, owner: str, name: str, user_id: str, ref: Optional[str] = None, path: Optional[str] = None) -> TreeResponse:
        project = await self.access.require_member(owner, name, user_id)
        repo_path = self.platform.repositories.require(project.owner, project.name)
        return await self.platform.tree_reader.list_async(repo_path, ref, path)

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    async def list_env(self, owner: str, name: str, user_id: str):
        project = await self.access.require_member(owner, name, user_id)
        variables = await self.environ_repo.list_vars(project.id)
        return BaseResponse.success(data=EnvVarList(
            variables=[EnvVarResponse(key=v.key, value=v.value) for v in variables]
        ))

    async def set_env(self, owner: str, name: str, user_id: str, data: EnvVarSet):
        project = await self.access.require_member(owner, name, user_id)
        await self.environ_repo.set_var(project.id, data.key, data.value)
        logger.info(f"Set {data.key} on {project.full_name}")
        return BaseResponse.success(message=f"{data.key} saved, applied on the next release")

    @log_print
    async def delete_env(self, owner: str, name: str, user_id: str, data: EnvVarDelete):
        project = await self.access.require_member(owner, name, user_id)
        if not await self.environ_repo.delete_var(project.id, data.key):
            raise NotFoundError(f"Variable {data.key} not found", resource_type="environment_variable")
        return BaseResponse.success(message=f"{data.key} deleted, applied on the next release")

    async def bulk_env(self, owner: str, name: str, user_id: str, data: EnvVarBulk):
        project = await self.access.require_member(owner, name, user_id)
        await self.environ_repo.replace_all(project.id, data.variables)
        logger.info(f"Replaced {len(data.variables)} variables on {project.full_name}")
        return BaseResponse.success(message=f"{len(data.variables)} variables saved, applied on the next release")

    # ------------------------------------------------------------------
    # Git credentials
    # ------------------------------------------------------------------

    @log_print
    async def get_git_credentials(self, owner: str, name: str, user_id: str) -> GitCredentialsResponse:
        project = await self.access.require_owner(owner, name, user_id)
        view = await self.platform.credentials.describe(project)
        return GitCredentialsResponse(
            **view,
            message="The password is only shown once; regenerate it to get a new one",
        )

    async def regenerate_git_password(self, owner: str, name: str, user_id: str) -> GitCredentialsResponse:
        project = await self.access.require_owner(owner, name, user_id)
        git_username, git_password = await self.platform.credentials.regenerate(project)
        return GitCredentialsResponse(
            git_username=git_username,
            git_password=git_password,
            has_password=True,
            message=PASSWORD_NOTICE,
        )
