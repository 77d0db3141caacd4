from community.models import ProductStatus, Topic, TopicType, UserRole


async def test_home_lists_visible_products_and_feeds(
    client, db, create_user, create_product, create_topic
):
    moderator = await create_user(role=UserRole.MODERATOR)
    author = await create_user()
    active = await create_product(slug="platform")
    await create_product(slug="labs", status=ProductStatus.BETA)
    await create_product(slug="internal", status=ProductStatus.HIDDEN)

    announcement = await create_topic(
        moderator, active, title="Welcome to the community", topic_type=TopicType.ANNOUNCEMENT
    )
    question = await create_topic(author, active, title="Unanswered question here")

    products = await client.get("/api/v1/community/products")
    assert products.status_code == 200
    assert sorted(p["slug"] for p in products.json()) == ["labs", "platform"]

    # Only pinned announcements are featured
    home = await client.get("/api/v1/community")
    assert home.status_code == 200
    assert home.json()["announcements"] == []

    row = await db.get(Topic, announcement.id)
    row.is_pinned = True
    await db.commit()

    home = await client.get("/api/v1/community")
    assert [t["id"] for t in home.json()["announcements"]] == [announcement.id]
    assert len(home.json()["topics"]) == 2

    unanswered = await client.get("/api/v1/community/feed", params={"filter": "unanswered"})
    assert [t["id"] for t in unanswered.json()] == [question.id]

    hidden = await client.get("/api/v1/community/products/internal")
    assert hidden.status_code == 404


async def test_product_page_filters(
    client, create_user, create_product, create_category, create_tag, create_topic
):
    author = await create_user()
    product = await create_product()
    category = await create_category(product, "setup")
    tag = await create_tag("install")

    first = await create_topic(author, product, title="First setup question", category_id=category.id)
    second = await create_topic(
        author, product, title="Second general discussion", topic_type=TopicType.DISCUSSION,
        tag_ids=[tag.id],
    )

    page = await client.get(f"/api/v1/community/products/{product.slug}")
    assert page.status_code == 200
    data = page.json()
    assert data["product"]["topic_count"] == 2
    assert [c["slug"] for c in data["categories"]] == ["setup"]
    assert data["popular_tags"] == [{"id": tag.id, "name": "Install", "slug": "install", "count": 1}]
    assert [t["id"] for t in data["topics"]["items"]] == [second.id, first.id]
    assert data["topics"]["pages"] == 1

    by_category = await client.get(
        f"/api/v1/community/products/{product.slug}", params={"category": "setup"}
    )
    assert [t["id"] for t in by_category.json()["topics"]["items"]] == [first.id]

    by_type = await client.get(
        f"/api/v1/community/products/{product.slug}", params={"type": "DISCUSSION"}
    )
    assert [t["id"] for t in by_type.json()["topics"]["items"]] == [second.id]


async def test_search_endpoint(client, create_user, create_product, create_tag, create_topic):
    author = await create_user()
    product = await create_product()
    tag = await create_tag("oauth")
    topic = await create_topic(
        author, product, title="OAuth callback mismatch", tag_ids=[tag.id]
    )
    await create_topic(author, product, title="Billing invoices question")

    resp = await client.get("/api/v1/search", params={"q": "oauth"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 1
    assert data["items"][0]["id"] == topic.id
    assert data["items"][0]["product"]["slug"] == product.slug
    assert data["items"][0]["tags"] == [{"name": "Oauth", "slug": "oauth"}]

    by_tags = await client.get("/api/v1/search", params={"tags": str(tag.id)})
    assert by_tags.json()["total"] == 1

    nothing = await client.get("/api/v1/search")
    assert nothing.json() == {"items": [], "total": 0, "page": 1, "total_pages": 0}

    bad_tags = await client.get("/api/v1/search", params={"tags": "one,two"})
    assert bad_tags.status_code == 422

    too_short = await client.get("/api/v1/search", params={"q": "a"})
    assert too_short.status_code == 422


async def test_profile_and_update(client, create_user, create_product, create_topic, auth_headers):
    user = await create_user(username="maria")
    other = await create_user(username="taken")
    product = await create_product()
    await create_topic(user, product)

    profile = await client.get("/api/v1/users/maria")
    assert profile.status_code == 200
    data = profile.json()
    assert data["counts"] == {"topics": 1, "replies": 0}
    assert data["bookmarks"] is None
    assert data["is_owner"] is False

    by_id = await client.get(f"/api/v1/users/{user.id}")
    assert by_id.json()["user"]["username"] == "maria"

    updated = await client.patch(
        "/api/v1/users/me",
        json={"bio": "Builds things", "website": "https://maria.dev", "github": ""},
        headers=auth_headers(user),
    )
    assert updated.status_code == 200
    assert updated.json()["bio"] == "Builds things"
    assert updated.json()["website"].startswith("https://maria.dev")
    assert updated.json()["github"] is None

    taken = await client.patch(
        "/api/v1/users/me", json={"username": other.username}, headers=auth_headers(user)
    )
    assert taken.status_code == 409
    assert taken.json()["code"] == "USERNAME_TAKEN"

    bad_url = await client.patch(
        "/api/v1/users/me", json={"website": "not a url"}, headers=auth_headers(user)
    )
    assert bad_url.status_code == 422

    assert (await client.get("/api/v1/users/nobody")).status_code == 404
