from sqlalchemy import select

from community.models import ProductStatus, Tag, Topic, TopicStatus, User, UserBadge, UserRole

BODY = "This body is long enough to pass the minimum topic length."
REPLY = "A helpful reply with enough characters."


async def test_create_topic_renders_and_counts(
    client, db, create_user, create_product, create_tag, create_badges, auth_headers
):
    await create_badges()
    user = await create_user()
    product = await create_product()
    tag = await create_tag("python")

    resp = await client.post(
        "/api/v1/topics",
        json={
            "product_id": product.id,
            "title": "How do I install the SDK?",
            "body": "Run **pip install** and then import it in your project.",
            "tag_ids": [tag.id],
        },
        headers=auth_headers(user),
    )
    assert resp.status_code == 201, resp.text
    topic = resp.json()
    assert topic["slug"] == "how-do-i-install-the-sdk"
    assert "<strong>pip install</strong>" in topic["body_html"]
    assert topic["status"] == "OPEN"
    assert [t["slug"] for t in topic["tags"]] == ["python"]

    refreshed_tag = await db.get(Tag, tag.id, populate_existing=True)
    assert refreshed_tag.usage_count == 1

    author = await db.get(User, user.id, populate_existing=True)
    assert author.reputation == 5
    badges = (await db.execute(select(UserBadge).where(UserBadge.user_id == user.id))).all()
    assert len(badges) == 1


async def test_duplicate_titles_get_suffixed_slugs(client, create_user, create_product, auth_headers):
    user = await create_user()
    product = await create_product()
    payload = {"product_id": product.id, "title": "Webhook retries explained", "body": BODY}

    slugs = []
    for _ in range(3):
        resp = await client.post("/api/v1/topics", json=payload, headers=auth_headers(user))
        assert resp.status_code == 201
        slugs.append(resp.json()["slug"])

    assert slugs == [
        "webhook-retries-explained",
        "webhook-retries-explained-1",
        "webhook-retries-explained-2",
    ]


async def test_create_topic_validation(
    client, create_user, create_product, create_category, create_tag, auth_headers
):
    user = await create_user()
    product = await create_product()
    hidden = await create_product(slug="secret", status=ProductStatus.HIDDEN)
    other = await create_product(slug="other")
    foreign_category = await create_category(other, "billing")
    tags = [await create_tag(f"tag{n}") for n in range(6)]
    headers = auth_headers(user)

    too_short = await client.post(
        "/api/v1/topics",
        json={"product_id": product.id, "title": "Short", "body": BODY},
        headers=headers,
    )
    assert too_short.status_code == 422

    too_many_tags = await client.post(
        "/api/v1/topics",
        json={
            "product_id": product.id,
            "title": "Too many tags on this one",
            "body": BODY,
            "tag_ids": [t.id for t in tags],
        },
        headers=headers,
    )
    assert too_many_tags.status_code == 422

    wrong_category = await client.post(
        "/api/v1/topics",
        json={
            "product_id": product.id,
            "title": "Category from another product",
            "body": BODY,
            "category_id": foreign_category.id,
        },
        headers=headers,
    )
    assert wrong_category.status_code == 400
    assert wrong_category.json()["code"] == "INVALID_CATEGORY"

    hidden_product = await client.post(
        "/api/v1/topics",
        json={"product_id": hidden.id, "title": "Posting to a hidden product", "body": BODY},
        headers=headers,
    )
    assert hidden_product.status_code == 404

    announcement = await client.post(
        "/api/v1/topics",
        json={
            "product_id": product.id,
            "title": "Announcing something big",
            "body": BODY,
            "type": "ANNOUNCEMENT",
        },
        headers=headers,
    )
    assert announcement.status_code == 403

    anonymous = await client.post(
        "/api/v1/topics",
        json={"product_id": product.id, "title": "Nobody is signed in", "body": BODY},
    )
    assert anonymous.status_code == 401


async def test_edit_topic_permissions(
    client, create_user, create_product, create_topic, create_tag, db, auth_headers
):
    author = await create_user()
    stranger = await create_user()
    moderator = await create_user(role=UserRole.MODERATOR)
    product = await create_product()
    old_tag = await create_tag("old")
    new_tag = await create_tag("new")
    topic = await create_topic(author, product, tag_ids=[old_tag.id])

    forbidden = await client.patch(
        f"/api/v1/topics/{topic.id}",
        json={"title": "Hijacked title here"},
        headers=auth_headers(stranger),
    )
    assert forbidden.status_code == 403

    edited = await client.patch(
        f"/api/v1/topics/{topic.id}",
        json={"title": "A better title for this", "tag_ids": [new_tag.id]},
        headers=auth_headers(author),
    )
    assert edited.status_code == 200
    data = edited.json()
    assert data["title"] == "A better title for this"
    assert data["slug"] == topic.slug
    assert [t["slug"] for t in data["tags"]] == ["new"]

    assert (await db.get(Tag, old_tag.id, populate_existing=True)).usage_count == 0
    assert (await db.get(Tag, new_tag.id, populate_existing=True)).usage_count == 1

    # Locked topics are for moderators only
    locked = await db.get(Topic, topic.id)
    locked.status = TopicStatus.LOCKED
    await db.commit()

    author_edit = await client.patch(
        f"/api/v1/topics/{topic.id}",
        json={"body": BODY + " Edited."},
        headers=auth_headers(author),
    )
    assert author_edit.status_code == 403

    mod_edit = await client.patch(
        f"/api/v1/topics/{topic.id}",
        json={"body": BODY + " Edited by a moderator."},
        headers=auth_headers(moderator),
    )
    assert mod_edit.status_code == 200


async def test_replies_thread_one_level(
    client, create_user, create_product, create_topic, db, auth_headers
):
    author = await create_user()
    replier = await create_user()
    product = await create_product()
    topic = await create_topic(author, product)
    headers = auth_headers(replier)

    first = await client.post(
        f"/api/v1/topics/{topic.id}/replies", json={"body": REPLY}, headers=headers
    )
    assert first.status_code == 201
    first_id = first.json()["id"]

    child = await client.post(
        f"/api/v1/topics/{topic.id}/replies",
        json={"body": REPLY, "parent_id": first_id},
        headers=headers,
    )
    grandchild = await client.post(
        f"/api/v1/topics/{topic.id}/replies",
        json={"body": REPLY, "parent_id": child.json()["id"]},
        headers=headers,
    )
    assert grandchild.status_code == 201
    assert grandchild.json()["parent_id"] == first_id

    page = await client.get(f"/api/v1/community/products/{product.slug}/topics/{topic.slug}")
    assert page.status_code == 200
    data = page.json()
    assert data["topic"]["reply_count"] == 3
    assert len(data["replies"]) == 1
    assert len(data["replies"][0]["children"]) == 2
    assert data["viewer"]["can_reply"] is False

    replier_row = await db.get(User, replier.id, populate_existing=True)
    assert replier_row.reputation == 6


async def test_reply_to_closed_topic_rejected(
    client, create_user, create_product, create_topic, db, auth_headers
):
    author = await create_user()
    product = await create_product()
    topic = await create_topic(author, product)

    row = await db.get(Topic, topic.id)
    row.status = TopicStatus.ARCHIVED
    await db.commit()

    resp = await client.post(
        f"/api/v1/topics/{topic.id}/replies", json={"body": REPLY}, headers=auth_headers(author)
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "TOPIC_CLOSED"


async def test_votes_toggle_and_flip(
    client, create_user, create_product, create_topic, auth_headers
):
    author = await create_user()
    voter = await create_user()
    product = await create_product()
    topic = await create_topic(author, product)
    headers = auth_headers(voter)

    async def vote(direction: str) -> dict:
        resp = await client.post(
            "/api/v1/votes", json={"topic_id": topic.id, "type": direction}, headers=headers
        )
        assert resp.status_code == 200, resp.text
        return resp.json()

    assert await vote("UP") == {"score": 1, "user_vote": "UP"}
    assert await vote("DOWN") == {"score": -1, "user_vote": "DOWN"}
    assert await vote("DOWN") == {"score": 0, "user_vote": None}

    missing = await client.post(
        "/api/v1/votes", json={"reply_id": 9999, "type": "UP"}, headers=headers
    )
    assert missing.status_code == 404

    both = await client.post(
        "/api/v1/votes",
        json={"topic_id": topic.id, "reply_id": 1, "type": "UP"},
        headers=headers,
    )
    assert both.status_code == 422


async def test_reply_votes_shown_to_viewer(
    client, create_user, create_product, create_topic, auth_headers
):
    author = await create_user()
    voter = await create_user()
    product = await create_product()
    topic = await create_topic(author, product)

    reply = await client.post(
        f"/api/v1/topics/{topic.id}/replies", json={"body": REPLY}, headers=auth_headers(author)
    )
    reply_id = reply.json()["id"]
    await client.post(
        "/api/v1/votes", json={"reply_id": reply_id, "type": "UP"}, headers=auth_headers(voter)
    )

    page = await client.get(
        f"/api/v1/community/products/{product.slug}/topics/{topic.slug}",
        headers=auth_headers(voter),
    )
    data = page.json()
    assert data["replies"][0]["vote_score"] == 1
    assert data["replies"][0]["user_vote"] == "UP"
    assert data["viewer"]["can_reply"] is True
    assert data["viewer"]["can_edit"] is False


async def test_bookmark_toggle(client, create_user, create_product, create_topic, auth_headers):
    user = await create_user()
    product = await create_product()
    topic = await create_topic(user, product)
    headers = auth_headers(user)

    first = await client.post(f"/api/v1/topics/{topic.id}/bookmark", headers=headers)
    assert first.json() == {"bookmarked": True}

    profile = await client.get(f"/api/v1/users/{user.username}", headers=headers)
    assert [b["id"] for b in profile.json()["bookmarks"]] == [topic.id]

    second = await client.post(f"/api/v1/topics/{topic.id}/bookmark", headers=headers)
    assert second.json() == {"bookmarked": False}


async def test_accept_answer(
    client, db, create_user, create_product, create_topic, create_badges, auth_headers
):
    await create_badges()
    author = await create_user()
    helper = await create_user()
    other = await create_user()
    product = await create_product()
    topic = await create_topic(author, product)

    reply = await client.post(
        f"/api/v1/topics/{topic.id}/replies", json={"body": REPLY}, headers=auth_headers(helper)
    )
    reply_id = reply.json()["id"]

    forbidden = await client.post(
        f"/api/v1/topics/{topic.id}/accept",
        json={"reply_id": reply_id},
        headers=auth_headers(other),
    )
    assert forbidden.status_code == 403

    for _ in range(2):
        accepted = await client.post(
            f"/api/v1/topics/{topic.id}/accept",
            json={"reply_id": reply_id},
            headers=auth_headers(author),
        )
        assert accepted.status_code == 200
        assert accepted.json() == {
            "success": True,
            "status": "ANSWERED",
            "accepted_reply_id": reply_id,
        }

    # Reply reputation (2) plus one award for the accepted answer (15)
    helper_row = await db.get(User, helper.id, populate_existing=True)
    assert helper_row.reputation == 17

    page = await client.get(f"/api/v1/community/products/{product.slug}/topics/{topic.slug}")
    data = page.json()
    assert data["accepted_reply"]["id"] == reply_id
    assert data["topic"]["has_accepted_answer"] is True


async def test_accept_on_locked_topic_keeps_lock(
    client, create_user, create_product, create_topic, auth_headers
):
    moderator = await create_user(role=UserRole.MODERATOR)
    author = await create_user()
    helper = await create_user()
    product = await create_product()
    topic = await create_topic(author, product)

    reply = await client.post(
        f"/api/v1/topics/{topic.id}/replies", json={"body": REPLY}, headers=auth_headers(helper)
    )
    reply_id = reply.json()["id"]

    locked = await client.post(
        f"/api/v1/mod/topics/{topic.id}/lock", json={}, headers=auth_headers(moderator)
    )
    assert locked.json()["status"] == "LOCKED"

    by_author = await client.post(
        f"/api/v1/topics/{topic.id}/accept",
        json={"reply_id": reply_id},
        headers=auth_headers(author),
    )
    assert by_author.status_code == 403

    by_moderator = await client.post(
        f"/api/v1/topics/{topic.id}/accept",
        json={"reply_id": reply_id},
        headers=auth_headers(moderator),
    )
    assert by_moderator.status_code == 200
    assert by_moderator.json()["status"] == "LOCKED"
    assert by_moderator.json()["accepted_reply_id"] == reply_id

    late_reply = await client.post(
        f"/api/v1/topics/{topic.id}/replies", json={"body": REPLY}, headers=auth_headers(helper)
    )
    assert late_reply.status_code == 400


async def test_related_topics_prefer_shared_tags(
    client, create_user, create_product, create_tag, create_topic
):
    author = await create_user()
    product = await create_product()
    shared = await create_tag("shared")
    topic = await create_topic(author, product, title="Main topic about caching", tag_ids=[shared.id])
    sibling = await create_topic(author, product, title="Sibling caching question", tag_ids=[shared.id])
    unrelated = await create_topic(author, product, title="Unrelated billing question")

    resp = await client.get(f"/api/v1/topics/{topic.id}/related")
    assert resp.status_code == 200
    assert [t["id"] for t in resp.json()] == [sibling.id, unrelated.id]


async def test_view_count_increments(client, create_user, create_product, create_topic):
    author = await create_user()
    product = await create_product()
    topic = await create_topic(author, product)
    url = f"/api/v1/community/products/{product.slug}/topics/{topic.slug}"

    await client.get(url)
    second = await client.get(url)
    assert second.json()["topic"]["view_count"] == 2

    missing = await client.get(f"/api/v1/community/products/{product.slug}/topics/nope")
    assert missing.status_code == 404
