"""
Forum Module - Community discussions.

Features:
- Topics with markdown, tags and categories
- One-level threaded replies and accepted answers
- Up/down votes and bookmarks
"""

from community.modules.forum.service import ForumService

__all__ = ["ForumService"]
