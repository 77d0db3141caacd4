"""
ORM models.

Importing this package registers every table on Base.metadata.
"""

from community.models.catalog import (
    VISIBLE_PRODUCT_STATUSES,
    Category,
    Product,
    ProductStatus,
    Tag,
)
from community.models.forum import (
    CLOSED_TOPIC_STATUSES,
    Bookmark,
    Reply,
    Topic,
    TopicStatus,
    TopicTag,
    TopicType,
    Vote,
    VoteType,
)
from community.models.moderation import (
    ModAction,
    ModActionType,
    Report,
    ReportReason,
    ReportStatus,
)
from community.models.user import (
    Badge,
    User,
    UserBadge,
    UserRole,
    VerificationCode,
    VerificationCodeType,
)

__all__ = [
    "Badge",
    "Bookmark",
    "CLOSED_TOPIC_STATUSES",
    "Category",
    "ModAction",
    "ModActionType",
    "Product",
    "ProductStatus",
    "Reply",
    "Report",
    "ReportReason",
    "ReportStatus",
    "Tag",
    "Topic",
    "TopicStatus",
    "TopicTag",
    "TopicType",
    "User",
    "UserBadge",
    "UserRole",
    "VISIBLE_PRODUCT_STATUSES",
    "VerificationCode",
    "VerificationCodeType",
    "Vote",
    "VoteType",
]
