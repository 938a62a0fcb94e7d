"""Authentication module for NewsDesk.

认证模块包入口。
"""

from apps.auth.api import router
from apps.auth.service import AuthService

__all__ = ["router", "AuthService"]
