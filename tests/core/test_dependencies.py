"""Tests for core/dependencies.py — principal resolution and role floors.

认证与角色门槛依赖相关测试。
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

# 路由注解在模块全局中解析，别名必须在模块级导入
from core.dependencies import EditorPrincipal, OptionalPrincipal, SubscriberPrincipal


def _build_app() -> FastAPI:
    """Small app exposing one endpoint per dependency.

    数据库会话被替换为 ``None``：这些用例在访问数据库之前就已得出结果。
    """
    from core.database import get_session
    from core.exceptions import NewsletterError

    app = FastAPI()

    @app.exception_handler(NewsletterError)
    async def handler(request, exc: NewsletterError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.get("/optional")
    async def optional_endpoint(principal: OptionalPrincipal):
        return {"principal": principal.id if principal else None}

    @app.get("/subscriber")
    async def subscriber_endpoint(principal: SubscriberPrincipal):
        return {"id": principal.id}

    @app.get("/editor")
    async def editor_endpoint(principal: EditorPrincipal):
        return {"id": principal.id}

    async def no_session():
        yield None

    app.dependency_overrides[get_session] = no_session
    return app


class TestOptionalPrincipal:
    """Test the optional principal dependency.

    验证可选主体依赖：缺失或无效令牌都视为匿名。
    """

    def test_no_credentials_is_anonymous(self):
        """Verify requests without a token resolve to ``None``.

        验证未携带令牌时主体为 ``None``。

        Returns:
            None: This test does not return a value.
        """
        client = TestClient(_build_app())
        response = client.get("/optional")

        assert response.status_code == 200
        assert response.json()["principal"] is None

    def test_invalid_token_is_anonymous(self):
        """Verify an invalid token is ignored rather than rejected.

        验证无效令牌不会导致报错，而是按匿名处理。

        Returns:
            None: This test does not return a value.
        """
        client = TestClient(_build_app())
        response = client.get("/optional", headers={"Authorization": "Bearer bad.token.value"})

        assert response.status_code == 200
        assert response.json()["principal"] is None


class TestRequireCapability:
    """Test the role floor dependencies.

    验证角色门槛依赖在缺少凭证时的行为。
    """

    @pytest.mark.parametrize("path", ["/subscriber", "/editor"])
    def test_missing_token_is_401(self, path):
        """Verify a missing principal always yields 401.

        验证缺少主体时一律返回 401，而不是 403。

        Args:
            path: Protected endpoint path.

        Returns:
            None: This test does not return a value.
        """
        client = TestClient(_build_app())
        response = client.get(path)

        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication required"

    def test_invalid_token_reports_token_error(self):
        """Verify a present but invalid token names the token problem.

        验证携带无效令牌时返回具体的令牌错误信息。

        Returns:
            None: This test does not return a value.
        """
        client = TestClient(_build_app())
        response = client.get("/editor", headers={"Authorization": "Bearer bad.token.value"})

        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid or expired token"


class TestPrincipalFromToken:
    """End-to-end token resolution through the real application.

    通过完整应用验证令牌到主体的解析。
    """

    def test_me_returns_principal(self, client, subscriber_headers):
        """Verify ``/auth/me`` returns the caller's snapshot.

        验证 /auth/me 返回当前用户的快照。

        Args:
            client: FastAPI test client fixture.
            subscriber_headers: Authorization headers fixture.

        Returns:
            None: This test does not return a value.
        """
        response = client.get("/api/v1/auth/me", headers=subscriber_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["username"] == "reader"
        assert data["role"] == "subscriber"
        assert "password_hash" not in data

    def test_refresh_token_not_accepted_as_access(self, client):
        """Verify a refresh token cannot authenticate a request.

        验证刷新令牌不能用于访问受保护接口。

        Args:
            client: FastAPI test client fixture.

        Returns:
            None: This test does not return a value.
        """
        client.post(
            "/api/v1/auth/register",
            json={
                "username": "tokenuser",
                "email": "tokenuser@example.com",
                "password": "password123",
                "full_name": "Token User",
            },
        )
        login = client.post(
            "/api/v1/auth/login",
            json={"email": "tokenuser@example.com", "password": "password123"},
        ).json()

        response = client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {login['refresh_token']}"},
        )
        assert response.status_code == 401

    def test_subscriber_blocked_from_editor_routes(self, client, subscriber_headers):
        """Verify a subscriber gets 403 on an editor endpoint.

        验证订阅者访问编辑端接口返回 403。

        Args:
            client: FastAPI test client fixture.
            subscriber_headers: Authorization headers fixture.

        Returns:
            None: This test does not return a value.
        """
        response = client.get("/api/v1/editor/issues", headers=subscriber_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Editor access required"
