from sqlalchemy import select

from community.models import User, VerificationCode, VerificationCodeType


PASSWORD = "StrongPass123"
DEFAULT_PASSWORD = "UserPass123"


async def latest_code(db, email: str) -> str:
    result = await db.execute(
        select(VerificationCode.code)
        .where(VerificationCode.email == email)
        .order_by(VerificationCode.id.desc())
    )
    return result.scalars().first()


async def test_signup_with_verified_email_then_login(client, db):
    email = "newcomer@example.com"

    resp = await client.post("/api/v1/auth/send-otp", json={"email": email, "type": "signup"})
    assert resp.status_code == 200, resp.text

    code = await latest_code(db, email)
    resp = await client.post(
        "/api/v1/auth/verify-otp", json={"email": email, "code": code, "type": "signup"}
    )
    assert resp.status_code == 200
    assert resp.json()["verified"] is True

    resp = await client.post(
        "/api/v1/auth/signup",
        json={"name": "New Comer", "email": "NewComer@Example.com", "password": PASSWORD},
    )
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["user"]["email"] == email
    assert body["user"]["username"] == "newcomer"
    assert body["user"]["email_verified"] is True

    login = await client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    assert login.status_code == 200
    login_body = login.json()
    assert login_body["token_type"] == "bearer"
    assert "accessToken" in login.cookies

    me = await client.get(
        "/api/v1/auth/me",
        headers={"Authorization": f"Bearer {login_body['access_token']}"},
    )
    assert me.status_code == 200
    assert me.json()["email"] == email


async def test_signup_without_code_is_unverified_and_unique_username(client, create_user):
    await create_user(email="taken@example.com", username="sam")

    resp = await client.post(
        "/api/v1/auth/signup",
        json={"name": "Sam", "email": "sam@example.com", "password": PASSWORD},
    )
    assert resp.status_code == 201
    user = resp.json()["user"]
    assert user["username"] == "sam1"
    assert user["email_verified"] is False

    dup = await client.post(
        "/api/v1/auth/signup",
        json={"name": "Sam", "email": "taken@example.com", "password": PASSWORD},
    )
    assert dup.status_code == 400
    assert dup.json()["code"] == "EMAIL_TAKEN"


async def test_signup_with_long_local_part_fits_username_column(client):
    local = "a" * 40
    usernames = []
    for domain in ("example.com", "example.org"):
        resp = await client.post(
            "/api/v1/auth/signup",
            json={"name": "Long Name", "email": f"{local}@{domain}", "password": PASSWORD},
        )
        assert resp.status_code == 201, resp.text
        usernames.append(resp.json()["user"]["username"])

    assert usernames == ["a" * 30, "a" * 29 + "1"]
    assert all(len(username) <= 30 for username in usernames)


async def test_signup_rejects_weak_password(client):
    resp = await client.post(
        "/api/v1/auth/signup",
        json={"name": "Weak", "email": "weak@example.com", "password": "weakpassword"},
    )
    assert resp.status_code == 422


async def test_send_signup_code_for_existing_email_fails(client, create_user):
    user = await create_user()
    resp = await client.post(
        "/api/v1/auth/send-otp", json={"email": user.email, "type": "signup"}
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "EMAIL_TAKEN"


async def test_signin_code_for_unknown_email_is_silent(client, db):
    resp = await client.post(
        "/api/v1/auth/send-otp", json={"email": "ghost@example.com", "type": "signin"}
    )
    assert resp.status_code == 200
    assert await latest_code(db, "ghost@example.com") is None


async def test_otp_sign_in_flow(client, db, create_user):
    user = await create_user(password=None)

    resp = await client.post("/api/v1/auth/send-otp", json={"email": user.email, "type": "signin"})
    assert resp.status_code == 200
    code = await latest_code(db, user.email)

    # Not yet verified
    early = await client.post(
        "/api/v1/auth/login", json={"email": user.email, "password": f"OTP:{code}"}
    )
    assert early.status_code == 401
    assert early.json()["code"] == "INVALID_CODE"

    verify = await client.post(
        "/api/v1/auth/verify-otp", json={"email": user.email, "code": code, "type": "signin"}
    )
    assert verify.status_code == 200
    assert verify.json()["user_id"] == user.id

    again = await client.post(
        "/api/v1/auth/verify-otp", json={"email": user.email, "code": code, "type": "signin"}
    )
    assert again.status_code == 400
    assert again.json()["code"] == "INVALID_CODE"

    login = await client.post(
        "/api/v1/auth/login", json={"email": user.email, "password": f"OTP:{code}"}
    )
    assert login.status_code == 200
    assert login.json()["user"]["id"] == user.id

    refreshed = await db.get(User, user.id, populate_existing=True)
    assert refreshed.last_login is not None


async def test_password_login_failures(client, create_user):
    user = await create_user()
    passwordless = await create_user(password=None)

    unknown = await client.post(
        "/api/v1/auth/login", json={"email": "nobody@example.com", "password": "whatever"}
    )
    assert unknown.status_code == 401

    wrong = await client.post(
        "/api/v1/auth/login", json={"email": user.email, "password": "WrongPass123"}
    )
    assert wrong.status_code == 401

    no_password = await client.post(
        "/api/v1/auth/login", json={"email": passwordless.email, "password": DEFAULT_PASSWORD}
    )
    assert no_password.status_code == 400
    assert no_password.json()["code"] == "NO_PASSWORD"


async def test_banned_user_cannot_sign_in(client, create_user, auth_headers):
    user = await create_user(is_banned=True)

    login = await client.post(
        "/api/v1/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD}
    )
    assert login.status_code == 403
    assert login.json()["code"] == "BANNED"

    code = await client.post("/api/v1/auth/send-otp", json={"email": user.email, "type": "signin"})
    assert code.status_code == 403

    # Existing sessions stop working too
    me = await client.get("/api/v1/auth/me", headers=auth_headers(user))
    assert me.status_code == 403


async def test_session_cookie_and_logout(client, create_user):
    user = await create_user()
    login = await client.post(
        "/api/v1/auth/login", json={"email": user.email, "password": DEFAULT_PASSWORD}
    )
    assert login.status_code == 200

    # Cookie carried by the client authenticates
    me = await client.get("/api/v1/auth/me")
    assert me.status_code == 200

    logout = await client.post("/api/v1/auth/logout")
    assert logout.status_code == 200
    client.cookies.clear()

    assert (await client.get("/api/v1/auth/me")).status_code == 401


async def test_invalid_token_rejected(client):
    resp = await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert resp.status_code == 401


async def test_signup_code_type_is_stored(client, db):
    email = "typed@example.com"
    await client.post("/api/v1/auth/send-otp", json={"email": email, "type": "signup"})
    stored = (
        await db.execute(select(VerificationCode).where(VerificationCode.email == email))
    ).scalar_one()
    assert stored.type == VerificationCodeType.EMAIL_VERIFICATION
    assert stored.user_id is None
