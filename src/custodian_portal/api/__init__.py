"""Public API surface for HTTP serving and Python-first interfaces."""

from custodian_portal.api.app import create_app
from custodian_portal.api.python_interface import AuthSession, PortalApiClient

__all__ = [
    "AuthSession",
    "PortalApiClient",
    "create_app",
]
