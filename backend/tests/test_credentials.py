"""Tests for the git credential store."""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from pushdeploy.config.settings import GitConfig
from pushdeploy.core import credentials as credentials_module
from pushdeploy.core.credentials import CredentialStore
from pushdeploy.db.repository import GitCredentialRepository
from pushdeploy.utils.exceptions import NotFoundError


@pytest.fixture
async def project(make_user, make_project):
    owner = await make_user("alice")
    return await make_project(owner, "site")


class TestIssue:

    async def test_issue_returns_owner_and_fresh_password(self, project):
        store = CredentialStore()
        username, password = await store.issue(project)

        assert username == "alice"
        assert len(password) == GitConfig.PASSWORD_LENGTH
        assert password.isalnum()

    async def test_plaintext_is_not_stored(self, project):
        store = CredentialStore()
        _, password = await store.issue(project)

        stored = await GitCredentialRepository().get_by_project(project.id)
        assert stored.password_hash != password
        assert stored.password_hash.startswith("$2")

    async def test_issued_password_authenticates(self, project):
        store = CredentialStore()
        username, password = await store.issue(project)

        assert await store.authenticate(project, username, password) is True

    async def test_issue_twice_rotates(self, project):
        store = CredentialStore()
        _, first = await store.issue(project)
        _, second = await store.issue(project)

        assert first != second
        assert await store.authenticate(project, "alice", first) is False
        assert await store.authenticate(project, "alice", second) is True

    async def test_describe_never_returns_the_password(self, project):
        store = CredentialStore()
        await store.issue(project)

        view = await store.describe(project)
        assert view == {"git_username": "alice", "has_password": True, "git_password": None}


class TestAuthenticate:

    async def test_wrong_password(self, project):
        store = CredentialStore()
        await store.issue(project)
        assert await store.authenticate(project, "alice", "not-the-password") is False

    async def test_wrong_username(self, project):
        store = CredentialStore()
        _, password = await store.issue(project)
        assert await store.authenticate(project, "mallory", password) is False

    async def test_unknown_project_still_checks_a_hash(self):
        store = CredentialStore()
        verify = AsyncMock(return_value=False)
        with patch.object(credentials_module, "verify_password", verify):
            assert await store.authenticate(None, "alice", "whatever") is False

        verify.assert_awaited_once_with("whatever", None)

    async def test_project_without_credentials(self, project):
        store = CredentialStore()
        assert await store.authenticate(project, "alice", "anything") is False

    async def test_empty_password(self, project):
        store = CredentialStore()
        await store.issue(project)
        assert await store.authenticate(project, "alice", "") is False


class TestRegenerate:

    async def test_old_password_stops_working(self, project):
        store = CredentialStore()
        _, old = await store.issue(project)
        _, new = await store.regenerate(project)

        assert await store.authenticate(project, "alice", old) is False
        assert await store.authenticate(project, "alice", new) is True

    async def test_generation_is_bumped(self, project):
        store = CredentialStore()
        repo = GitCredentialRepository()
        await store.issue(project)
        before = await repo.get_generation(project.id)

        await store.regenerate(project)

        assert await repo.get_generation(project.id) == before + 1

    async def test_regenerate_without_credentials(self, project):
        with pytest.raises(NotFoundError):
            await CredentialStore().regenerate(project)

    async def test_rotation_during_check_rejects_old_password(self, project):
        store = CredentialStore()
        _, old = await store.issue(project)
        real_verify = credentials_module.verify_password

        async def verify_then_rotate(password, password_hash=None):
            result = await real_verify(password, password_hash)
            # Rotation commits after the hash matched
            await store.regenerate(project)
            return result

        with patch.object(credentials_module, "verify_password", verify_then_rotate):
            assert await store.authenticate(project, "alice", old) is False

    async def test_concurrent_rotations_leave_one_valid_password(self, project):
        store = CredentialStore()
        await store.issue(project)

        results = await asyncio.gather(store.regenerate(project), store.regenerate(project))
        passwords = [password for _, password in results]

        valid = [p for p in passwords if await store.authenticate(project, "alice", p)]
        assert len(valid) == 1
