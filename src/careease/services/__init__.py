"""
Clients for the CareEase REST API.

Each service wraps one group of endpoints on top of a shared ApiClient.
"""

from .api import ApiClient
from .admin import AdminService, SystemAlert, system_alerts
from .auth import AuthService, AuthSession
from .chat import ChatService
from .user import UserService

__all__ = [
    "ApiClient",
    "AdminService",
    "AuthService",
    "AuthSession",
    "ChatService",
    "SystemAlert",
    "UserService",
    "system_alerts",
]
