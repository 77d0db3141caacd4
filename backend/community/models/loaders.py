"""
Shared eager-loading options for topic listings.

Async sessions cannot lazy load, so every query that hands topics to the API
layer loads the relationships the serializers touch.
"""

from sqlalchemy.orm import selectinload

from community.models.forum import Reply, Topic, TopicTag


def topic_list_options() -> tuple:
    """Author, product, category and tags of a topic."""
    return (
        selectinload(Topic.author),
        selectinload(Topic.product),
        selectinload(Topic.category),
        selectinload(Topic.tag_links).selectinload(TopicTag.tag),
    )


def reply_options() -> tuple:
    """Author and live children (with their authors) of a reply."""
    return (
        selectinload(Reply.author),
        selectinload(Reply.children).selectinload(Reply.author),
    )
