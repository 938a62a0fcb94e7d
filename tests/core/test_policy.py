"""Tests for core/policy.py — capability floors and article ownership.

角色策略（能力下限与文章所有权）相关测试。
"""

from __future__ import annotations

import pytest

from core.exceptions import AuthenticationError, AuthorizationError
from core.policy import (
    Capability,
    Principal,
    Role,
    can_delete_article,
    ensure_can_delete_article,
    is_allowed,
    require,
)


def make_principal(role: Role, user_id: int = 1) -> Principal:
    return Principal(
        id=user_id,
        username=f"user{user_id}",
        email=f"user{user_id}@example.com",
        full_name=None,
        role=role,
        subscription_status="active",
        subscription_end_date=None,
    )


class TestCapabilityFloor:
    """Verify the inclusive role ordering.

    验证 subscriber < editor < admin 的包含式顺序。
    """

    @pytest.mark.parametrize(
        "role, required, expected",
        [
            (Role.SUBSCRIBER, Capability.SUBSCRIBER, True),
            (Role.SUBSCRIBER, Capability.EDITOR, False),
            (Role.EDITOR, Capability.SUBSCRIBER, True),
            (Role.EDITOR, Capability.EDITOR, True),
            (Role.EDITOR, Capability.ADMIN, False),
            (Role.ADMIN, Capability.SUBSCRIBER, True),
            (Role.ADMIN, Capability.EDITOR, True),
            (Role.ADMIN, Capability.ADMIN, True),
        ],
    )
    def test_is_allowed(self, role, required, expected):
        """Verify each role against each floor.

        验证每个角色在每个门槛下的判断结果。

        Args:
            role: Principal role.
            required: Required capability.
            expected: Expected decision.

        Returns:
            None: This test does not return a value.
        """
        assert is_allowed(make_principal(role), required) is expected

    def test_anonymous_only_public(self):
        """Verify an absent principal passes only the public floor.

        验证匿名请求只满足 public 门槛。

        Returns:
            None: This test does not return a value.
        """
        assert is_allowed(None, Capability.PUBLIC) is True
        assert is_allowed(None, Capability.AUTHENTICATED) is False

    def test_require_missing_principal_is_authentication_error(self):
        """Verify ``require`` raises 401-class errors for anonymous callers.

        验证匿名调用受保护操作时抛出 AuthenticationError。

        Returns:
            None: This test does not return a value.
        """
        with pytest.raises(AuthenticationError):
            require(None, Capability.ADMIN)

    def test_require_low_role_is_authorization_error(self):
        """Verify ``require`` raises 403-class errors for insufficient roles.

        验证角色不足时抛出 AuthorizationError，并带有对应消息。

        Returns:
            None: This test does not return a value.
        """
        with pytest.raises(AuthorizationError) as exc_info:
            require(make_principal(Role.EDITOR), Capability.ADMIN)
        assert exc_info.value.message == "Admin access required"
        assert exc_info.value.status_code == 403

    def test_require_returns_principal(self):
        """Verify allowed principals are passed through unchanged.

        Returns:
            None: This test does not return a value.
        """
        principal = make_principal(Role.SUBSCRIBER)
        assert require(principal, Capability.SUBSCRIBER) is principal


class TestArticleOwnership:
    """Verify the author-or-admin deletion rule.

    验证文章删除仅限作者本人或管理员。
    """

    def test_author_may_delete(self):
        """Verify the author can delete their own article.

        Returns:
            None: This test does not return a value.
        """
        assert can_delete_article(make_principal(Role.EDITOR, 5), author_id=5) is True

    def test_other_editor_may_not_delete(self):
        """Verify an editor cannot delete another editor's article.

        验证编辑不能删除他人的文章。

        Returns:
            None: This test does not return a value.
        """
        editor = make_principal(Role.EDITOR, 5)
        assert can_delete_article(editor, author_id=6) is False
        with pytest.raises(AuthorizationError):
            ensure_can_delete_article(editor, author_id=6)

    def test_admin_may_delete_any(self):
        """Verify admins may delete any article, including orphaned ones.

        验证管理员可删除任意文章，包括作者已被删除的文章。

        Returns:
            None: This test does not return a value.
        """
        admin = make_principal(Role.ADMIN, 1)
        assert can_delete_article(admin, author_id=99) is True
        assert can_delete_article(admin, author_id=None) is True

    def test_orphaned_article_only_admin(self):
        """Verify an article whose author was removed is admin-only.

        Returns:
            None: This test does not return a value.
        """
        assert can_delete_article(make_principal(Role.EDITOR, 5), author_id=None) is False

    def test_anonymous_delete_is_authentication_error(self):
        """Verify anonymous deletion attempts raise AuthenticationError.

        Returns:
            None: This test does not return a value.
        """
        with pytest.raises(AuthenticationError):
            ensure_can_delete_article(None, author_id=1)


class TestPrincipalSnapshot:
    """Verify the immutable principal snapshot.

    验证主体快照不可变且可序列化。
    """

    def test_frozen(self):
        """Verify fields cannot be reassigned.

        Returns:
            None: This test does not return a value.
        """
        from dataclasses import FrozenInstanceError

        principal = make_principal(Role.SUBSCRIBER)
        with pytest.raises(FrozenInstanceError):
            principal.role = Role.ADMIN

    def test_to_dict_uses_role_value(self):
        """Verify ``to_dict`` renders the role as its string value.

        Returns:
            None: This test does not return a value.
        """
        data = make_principal(Role.EDITOR, 3).to_dict()
        assert data["role"] == "editor"
        assert data["id"] == 3
