"""Tests for repository methods with concurrency-sensitive writes."""

from unittest.mock import AsyncMock, patch

from pushdeploy.db.repository import ShareRepository


class TestShareRepository:

    async def test_add_member_twice(self, make_user, make_project):
        alice, bob = await make_user("alice"), await make_user("bob")
        project = await make_project(alice, "site")
        shares = ShareRepository()

        assert await shares.add_member(project.id, bob.id) is True
        assert await shares.add_member(project.id, bob.id) is False

    async def test_duplicate_insert_after_existence_check(self, make_user, make_project):
        """Both invites pass the lookup; the second insert hits the primary key"""
        alice, bob = await make_user("alice"), await make_user("bob")
        project = await make_project(alice, "site")
        shares = ShareRepository()
        await shares.add_member(project.id, bob.id)

        with patch.object(shares, "get_one", AsyncMock(return_value=None)):
            assert await shares.add_member(project.id, bob.id) is False

        members = await shares.list_members(project.id)
        assert [user.username for _, user in members] == ["bob"]
