"""
Auth Module - accounts and sign in.

Features:
- One-time email codes for signup verification and passwordless sign in
- Password accounts with bcrypt hashes
- JWT session tokens
"""

from community.modules.auth.email import EmailSender
from community.modules.auth.service import AuthService

__all__ = ["AuthService", "EmailSender"]
