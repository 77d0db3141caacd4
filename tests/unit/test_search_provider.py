"""
Unit tests for topic search on the substring provider.
"""
from community.models import TopicStatus, TopicType
from community.modules.search import (
    IndexableDocument,
    LikeSearchProvider,
    SearchParams,
    get_search_provider,
    search_topics,
)

TOPIC_BODY_LONG = "A body long enough to satisfy the minimum length for topics."


async def test_sqlite_uses_substring_provider(db):
    assert isinstance(get_search_provider(db), LikeSearchProvider)


async def test_empty_params_search_nothing(db):
    result = await search_topics(db, SearchParams(query="   "))
    assert result.items == []
    assert result.total == 0
    assert result.total_pages == 0


async def test_title_matches_rank_first(db, create_user, create_product, create_topic):
    author = await create_user()
    product = await create_product()
    body_match = await create_topic(
        author, product, title="Unrelated heading here", body="Talks about webhooks in the body text."
    )
    title_match = await create_topic(
        author, product, title="Webhooks keep failing", body="Signature mismatch in production setups."
    )
    await create_topic(author, product, title="Something else entirely", body="Nothing relevant in this body.")

    result = await search_topics(db, SearchParams(query="WEBHOOKS"))

    assert result.total == 2
    assert [hit.id for hit in result.items] == [title_match.id, body_match.id]
    assert result.items[0].product_slug == product.slug


async def test_like_wildcards_are_literal(db, create_user, create_product, create_topic):
    author = await create_user()
    product = await create_product()
    await create_topic(author, product, title="Progress at 100% complete", body=TOPIC_BODY_LONG)
    await create_topic(author, product, title="Progress at 1000 complete", body=TOPIC_BODY_LONG)

    result = await search_topics(db, SearchParams(query="100%"))
    assert [hit.title for hit in result.items] == ["Progress at 100% complete"]


async def test_filters_and_pagination(
    db, create_user, create_product, create_tag, create_topic
):
    author = await create_user()
    product = await create_product()
    other = await create_product(slug="other")
    tag = await create_tag("sdk")

    for n in range(3):
        await create_topic(author, product, title=f"SDK question number {n}", tag_ids=[tag.id])
    await create_topic(
        author, product, title="SDK discussion thread", topic_type=TopicType.DISCUSSION
    )
    await create_topic(author, other, title="SDK question elsewhere")

    by_tag = await search_topics(db, SearchParams(query="sdk", tag_ids=[tag.id], limit=2))
    assert by_tag.total == 3
    assert by_tag.total_pages == 2
    assert len(by_tag.items) == 2
    assert by_tag.items[0].tags == [{"name": "Sdk", "slug": "sdk"}]

    page_two = await search_topics(
        db, SearchParams(query="sdk", tag_ids=[tag.id], limit=2, page=2)
    )
    assert len(page_two.items) == 1

    by_type = await search_topics(
        db, SearchParams(query="sdk", product_id=product.id, type=TopicType.DISCUSSION)
    )
    assert [hit.title for hit in by_type.items] == ["SDK discussion thread"]

    by_status = await search_topics(
        db, SearchParams(product_id=other.id, status=TopicStatus.OPEN)
    )
    assert by_status.total == 1



async def test_indexable_document_from_topic(db, create_user, create_product, create_tag, create_topic):
    author = await create_user()
    product = await create_product()
    tag = await create_tag("cli")
    topic = await create_topic(author, product, title="Index me please", tag_ids=[tag.id])

    document = IndexableDocument.from_topic(topic)
    assert document.id == topic.id
    assert document.product_id == product.id
    assert document.author_id == author.id
    assert document.tags == ["cli"]

    provider = get_search_provider(db)
    await provider.index_topic(document)
    await provider.delete_topic(topic.id)
