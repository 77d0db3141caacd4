"""
Moderation Module - keeping the community healthy.

Features:
- Content reports and the moderation queue
- Lock, pin, move, re-status and delete topics
- Soft-deleting replies
- Banning and warning users, with an action log
"""

from community.modules.moderation.service import ModerationService

__all__ = ["ModerationService"]
