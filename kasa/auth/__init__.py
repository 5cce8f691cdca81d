"""Authentication and authorization package."""

from kasa.auth.authorization import (
    UNAUTHORIZED_MESSAGE,
    Authorizer,
    Permission,
    capability_allows,
    has_permission,
    require_permission,
)
from kasa.auth.service import (
    CALLBACK_FAILED_REDIRECT,
    LOGIN_FAILED_MESSAGE,
    AuthService,
    safe_redirect_target,
)

__all__ = [
    "AuthService",
    "Authorizer",
    "CALLBACK_FAILED_REDIRECT",
    "LOGIN_FAILED_MESSAGE",
    "Permission",
    "UNAUTHORIZED_MESSAGE",
    "capability_allows",
    "has_permission",
    "require_permission",
    "safe_redirect_target",
]
