"""
Credential Store

Per-project git credentials. The plaintext password exists only in the
return value of ``issue``/``regenerate``; the database keeps a bcrypt hash
and a generation counter that every rotation bumps.
"""

import hmac
import logging
from typing import Optional, Tuple, Dict, Any

from pushdeploy.db.models.project import Project
from pushdeploy.db.repository import GitCredentialRepository
from pushdeploy.utils.auth.password import generate_password, hash_password, verify_password
from pushdeploy.utils.exceptions import NotFoundError

logger = logging.getLogger(__name__)


class CredentialStore:
    """Issue, rotate and verify the git credentials of projects"""

    def __init__(self, credential_repo: Optional[GitCredentialRepository] = None):
        self.credential_repo = credential_repo or GitCredentialRepository()

    async def issue(self, project: Project) -> Tuple[str, str]:
        """
        Create the project's credential set

        A project that already has one gets it rotated instead.

        Returns:
            (username, plaintext password), shown to the caller once
        """
        existing = await self.credential_repo.get_by_project(project.id)
        if existing:
            return await self.regenerate(project)

        password = generate_password()
        password_hash = await hash_password(password)
        await self.credential_repo.create_credential(project.id, project.owner, password_hash)
        logger.info(f"Issued git credentials for {project.full_name}")
        return project.owner, password

    async def regenerate(self, project: Project) -> Tuple[str, str]:
        """
        Replace the password; the previous one stops working immediately

        Raises:
            NotFoundError: If the project never had credentials
        """
        password = generate_password()
        password_hash = await hash_password(password)
        generation = await self.credential_repo.rotate(project.id, password_hash)
        if generation is None:
            raise NotFoundError(f"No git credentials for {project.full_name}", resource_type="git_credential")
        logger.info(f"Rotated git credentials for {project.full_name} (generation {generation})")
        return project.owner, password

    async def authenticate(self, project: Optional[Project], username: str, password: str) -> bool:
        """
        Check basic-auth credentials against a project

        Unknown project, wrong username and wrong password all cost one
        bcrypt check and all return False.
        """
        credential = await self.credential_repo.get_by_project(project.id) if project else None

        password_ok = await verify_password(password or "", credential.password_hash if credential else None)
        username_ok = credential is not None and hmac.compare_digest(
            credential.username.encode("utf-8"), (username or "").encode("utf-8")
        )
        if not (password_ok and username_ok):
            return False

        # A rotation that committed while we were hashing invalidates this check
        current = await self.credential_repo.get_generation(project.id)
        if current != credential.generation:
            logger.info(f"Credentials of {project.full_name} rotated during authentication")
            return False
        return True

    async def describe(self, project: Project) -> Dict[str, Any]:
        """Redacted view; the plaintext is never served again"""
        credential = await self.credential_repo.get_by_project(project.id)
        return {
            "git_username": credential.username if credential else project.owner,
            "has_password": credential is not None,
            "git_password": None,
        }
