"""
Users Module - profiles, reputation and roles.
"""

from community.modules.users.service import UserService

__all__ = ["UserService"]
