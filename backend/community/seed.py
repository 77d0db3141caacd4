"""
Demo data for local development.

Demo accounts:
    admin@community.dev / Admin123!
    mod@community.dev / Mod12345!
    alice@example.com, bob@example.com, charlie@example.com / User1234!
"""

from datetime import datetime

from loguru import logger
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from community.core.security import hash_password
from community.models import (
    Badge,
    Category,
    Product,
    ProductStatus,
    Reply,
    Tag,
    Topic,
    TopicStatus,
    TopicTag,
    TopicType,
    User,
    UserBadge,
    UserRole,
)
from community.modules.forum.markdown import render_markdown

USERS = [
    {
        "email": "admin@community.dev",
        "name": "Admin User",
        "username": "admin",
        "role": UserRole.ADMIN,
        "reputation": 1000,
        "bio": "Community administrator",
        "password": "Admin123!",
    },
    {
        "email": "mod@community.dev",
        "name": "Moderator User",
        "username": "moderator",
        "role": UserRole.MODERATOR,
        "reputation": 500,
        "bio": "Community moderator",
        "password": "Mod12345!",
    },
    {
        "email": "alice@example.com",
        "name": "Alice Developer",
        "username": "alice",
        "role": UserRole.TRUSTED,
        "reputation": 250,
        "bio": "Full-stack developer passionate about building great products",
        "github": "alicedev",
        "password": "User1234!",
    },
    {
        "email": "bob@example.com",
        "name": "Bob Engineer",
        "username": "bob",
        "role": UserRole.USER,
        "reputation": 75,
        "bio": "Backend developer",
        "password": "User1234!",
    },
    {
        "email": "charlie@example.com",
        "name": "Charlie Designer",
        "username": "charlie",
        "role": UserRole.USER,
        "reputation": 120,
        "bio": "UI/UX designer and frontend developer",
        "twitter": "charliedesigns",
        "password": "User1234!",
    },
]

PRODUCTS = [
    {
        "slug": "acme-platform",
        "name": "Acme Platform",
        "description": "The main Acme Platform - your all-in-one solution for building amazing applications",
        "icon": "🚀",
        "color": "#6366f1",
        "status": ProductStatus.ACTIVE,
        "ordering": 1,
        "docs_url": "https://docs.acme.dev",
        "release_url": "https://acme.dev/changelog",
    },
    {
        "slug": "acme-analytics",
        "name": "Acme Analytics",
        "description": "Advanced analytics and insights platform (coming soon)",
        "icon": "📊",
        "color": "#10b981",
        "status": ProductStatus.HIDDEN,
        "ordering": 2,
    },
    {
        "slug": "acme-ai",
        "name": "Acme AI",
        "description": "AI-powered automation tools (beta)",
        "icon": "🤖",
        "color": "#f59e0b",
        "status": ProductStatus.BETA,
        "ordering": 3,
    },
]

# Categories of acme-platform
CATEGORIES = [
    ("getting-started", "Getting Started", "New to Acme? Start here for setup guides and tutorials", "🎯"),
    ("api", "API & Integration", "Questions about API endpoints, SDKs, and integrations", "🔗"),
    ("authentication", "Authentication", "SSO, OAuth, API keys, and security topics", "🔐"),
    ("troubleshooting", "Troubleshooting", "Having issues? Get help debugging and fixing problems", "🔧"),
    ("feature-requests", "Feature Requests", "Suggest new features and improvements", "💡"),
]

TAGS = [
    ("JavaScript", "javascript", "#f7df1e"),
    ("TypeScript", "typescript", "#3178c6"),
    ("React", "react", "#61dafb"),
    ("Next.js", "nextjs", "#000000"),
    ("Node.js", "nodejs", "#339933"),
    ("API", "api", "#6366f1"),
    ("Authentication", "authentication", "#ef4444"),
    ("Database", "database", "#8b5cf6"),
    ("Performance", "performance", "#22c55e"),
    ("Deployment", "deployment", "#f59e0b"),
    ("Docker", "docker", "#2496ed"),
    ("Webhooks", "webhooks", "#ec4899"),
]

BADGES = [
    ("First Post", "first-post", "Created your first topic", "✨", "#6366f1"),
    ("Helpful", "helpful", "Had an answer accepted", "🤝", "#22c55e"),
    ("Popular", "popular", "Received 10+ votes on a post", "🔥", "#f59e0b"),
    ("Veteran", "veteran", "Member for over 1 year", "🏆", "#a855f7"),
]

TOPICS = [
    {
        "slug": "welcome-to-acme-community",
        "title": "Welcome to the Acme Platform Community! 🎉",
        "body": (
            "# Welcome to our community!\n\n"
            "We're excited to have you here. This is your space to:\n\n"
            "- **Ask questions** about using Acme Platform\n"
            "- **Share solutions** you've discovered\n"
            "- **Discuss best practices** with other developers\n"
            "- **Showcase** what you've built\n\n"
            "## Community Guidelines\n\n"
            "- Be respectful and helpful\n"
            "- Search before posting\n"
            "- Use code blocks for code\n"
            "- Mark answers as accepted when your question is resolved\n\n"
            "Happy building! 🚀"
        ),
        "type": TopicType.ANNOUNCEMENT,
        "is_pinned": True,
        "author": "admin",
        "category": None,
        "vote_score": 25,
        "view_count": 500,
        "tags": [],
    },
    {
        "slug": "how-to-set-up-oauth-with-google",
        "title": "How to set up OAuth with Google in Acme Platform?",
        "body": (
            "I'm trying to integrate Google OAuth into my Acme Platform project but "
            "I'm getting stuck on the callback configuration.\n\n"
            "## What I've tried\n\n"
            "```typescript\nconst authConfig = {\n  providers: ['google'],\n"
            "  callbackUrl: '/api/auth/callback'\n};\n```\n\n"
            "## The error I'm seeing\n\n```\nError: Invalid redirect_uri\n```\n\n"
            "Any help would be appreciated!"
        ),
        "type": TopicType.QUESTION,
        "status": TopicStatus.ANSWERED,
        "author": "alice",
        "category": "authentication",
        "vote_score": 12,
        "view_count": 234,
        "tags": ["authentication", "api"],
    },
    {
        "slug": "best-practices-for-api-rate-limiting",
        "title": "Best practices for API rate limiting?",
        "body": (
            "I'm building an application that makes heavy use of the Acme API and I want "
            "to make sure I'm handling rate limits properly.\n\n"
            "## Questions\n\n"
            "1. What are the current rate limits for the API?\n"
            "2. How should I implement exponential backoff?\n"
            "3. Are there any client libraries that handle this automatically?\n\n"
            "I'm using TypeScript with Node.js. Thanks!"
        ),
        "type": TopicType.QUESTION,
        "author": "bob",
        "category": "api",
        "vote_score": 8,
        "view_count": 156,
        "tags": ["api", "typescript", "nodejs"],
    },
    {
        "slug": "getting-started-with-acme-sdk",
        "title": "Getting started with the Acme SDK - a complete guide",
        "body": (
            "After spending some time with the SDK, I wanted to share a comprehensive "
            "getting started guide for newcomers.\n\n"
            "## Installation\n\n```bash\nnpm install @acme/sdk\n```\n\n"
            "## Basic Setup\n\n"
            "```typescript\nimport { AcmeClient } from '@acme/sdk';\n\n"
            "const client = new AcmeClient({\n  apiKey: process.env.ACME_API_KEY,\n"
            "  environment: 'production'\n});\n```\n\n"
            "Hope this helps someone! Let me know if you have questions."
        ),
        "type": TopicType.DISCUSSION,
        "author": "alice",
        "category": "getting-started",
        "vote_score": 35,
        "view_count": 890,
        "tags": ["typescript", "nodejs"],
    },
    {
        "slug": "my-saas-dashboard-built-with-acme",
        "title": "Showcase: My SaaS dashboard built with Acme Platform",
        "body": (
            "I just launched my SaaS analytics dashboard built entirely on Acme Platform "
            "and wanted to share!\n\n"
            "## Features\n\n- Real-time data visualization\n- Custom reporting\n"
            "- Team collaboration\n- Webhook integrations\n\n"
            "Check it out at [example.com](https://example.com)\n\n"
            "Would love to hear your feedback!"
        ),
        "type": TopicType.SHOWCASE,
        "author": "charlie",
        "category": None,
        "vote_score": 42,
        "view_count": 567,
        "tags": ["nextjs", "react", "deployment"],
    },
    {
        "slug": "webhook-signature-verification-failing",
        "title": "Webhook signature verification failing in production",
        "body": (
            "I have webhooks working perfectly in development but when I deploy to "
            "production, the signature verification always fails.\n\n"
            "```typescript\nconst signature = req.headers['x-acme-signature'];\n"
            "const isValid = verifySignature(payload, signature, webhookSecret);\n"
            "// Always returns false in production\n```\n\n"
            "Any ideas what could be different in production?"
        ),
        "type": TopicType.QUESTION,
        "author": "bob",
        "category": "troubleshooting",
        "vote_score": 5,
        "view_count": 89,
        "tags": ["webhooks", "deployment"],
    },
]

# (topic slug, author, body, vote_score, accepted)
REPLIES = [
    (
        "how-to-set-up-oauth-with-google",
        "alice",
        "The issue is likely that your callback URL isn't matching what's registered "
        "in the Google Cloud Console.\n\n"
        "```\nhttp://localhost:3000/api/auth/callback/google\n```\n\n"
        "Note that it should include `/google` at the end for the Google provider.",
        8,
        True,
    ),
    (
        "best-practices-for-api-rate-limiting",
        "moderator",
        "Great question! Here are the current rate limits:\n\n"
        "- **Free tier**: 100 requests/minute\n"
        "- **Pro tier**: 1000 requests/minute\n"
        "- **Enterprise**: Custom limits\n\n"
        "The official SDK actually handles rate limiting automatically in v2.0+!",
        15,
        False,
    ),
    (
        "my-saas-dashboard-built-with-acme",
        "bob",
        "This looks amazing! 🎉\n\nLove the clean design and the feature set. "
        "How long did it take you to build this?",
        3,
        False,
    ),
]

# (username, badge slug)
AWARDS = [
    ("alice", "first-post"),
    ("alice", "helpful"),
    ("alice", "popular"),
    ("admin", "veteran"),
]


async def seed_database(db: AsyncSession) -> bool:
    """
    Insert the demo community.

    Returns:
        False when the demo admin already exists (nothing inserted)
    """
    if await db.scalar(select(User.id).where(User.email == USERS[0]["email"])) is not None:
        logger.info("Demo data already present, skipping")
        return False

    now = datetime.utcnow()

    users: dict[str, User] = {}
    for data in USERS:
        data = dict(data)
        password = data.pop("password")
        user = User(**data, hashed_password=hash_password(password), email_verified_at=now)
        db.add(user)
        users[user.username] = user

    products = [Product(**data) for data in PRODUCTS]
    db.add_all(products)
    main_product = products[0]
    await db.flush()

    categories: dict[str, Category] = {}
    for ordering, (slug, name, description, icon) in enumerate(CATEGORIES, start=1):
        category = Category(
            slug=slug,
            name=name,
            description=description,
            icon=icon,
            ordering=ordering,
            product_id=main_product.id,
        )
        db.add(category)
        categories[slug] = category

    tags: dict[str, Tag] = {}
    for name, slug, color in TAGS:
        tags[slug] = Tag(name=name, slug=slug, color=color)
        db.add(tags[slug])

    badges: dict[str, Badge] = {}
    for name, slug, description, icon, color in BADGES:
        badges[slug] = Badge(name=name, slug=slug, description=description, icon=icon, color=color)
        db.add(badges[slug])
    await db.flush()

    topics: dict[str, Topic] = {}
    for data in TOPICS:
        category = categories.get(data["category"]) if data["category"] else None
        topic = Topic(
            product_id=main_product.id,
            category_id=category.id if category else None,
            author_id=users[data["author"]].id,
            slug=data["slug"],
            title=data["title"],
            body=data["body"],
            body_html=render_markdown(data["body"]),
            type=data["type"],
            status=data.get("status", TopicStatus.OPEN),
            is_pinned=data.get("is_pinned", False),
            vote_score=data["vote_score"],
            view_count=data["view_count"],
            reply_count=sum(1 for reply in REPLIES if reply[0] == data["slug"]),
            last_activity=now,
            tag_links=[TopicTag(tag_id=tags[slug].id) for slug in data["tags"]],
        )
        db.add(topic)
        topics[topic.slug] = topic
    await db.flush()

    for topic_slug, author, body, score, accepted in REPLIES:
        topic = topics[topic_slug]
        reply = Reply(
            topic_id=topic.id,
            author_id=users[author].id,
            body=body,
            body_html=render_markdown(body),
            vote_score=score,
        )
        db.add(reply)
        await db.flush()
        if accepted:
            topic.accepted_reply_id = reply.id

    for username, badge_slug in AWARDS:
        db.add(UserBadge(user_id=users[username].id, badge_id=badges[badge_slug].id))

    # Tag usage follows the links created above
    await db.execute(
        update(Tag)
        .values(
            usage_count=select(func.count(TopicTag.id))
            .where(TopicTag.tag_id == Tag.id)
            .scalar_subquery()
        )
        .execution_options(synchronize_session=False)
    )
    await db.flush()

    logger.info(
        f"Seeded {len(users)} users, {len(products)} products, {len(categories)} categories, "
        f"{len(tags)} tags, {len(topics)} topics, {len(REPLIES)} replies"
    )
    return True
