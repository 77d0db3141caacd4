"""
Unit tests for auth helpers: usernames, request validation and code emails.
"""
import pytest
from pydantic import ValidationError

from community.api.v1.endpoints.auth import SignupRequest
from community.api.v1.endpoints.topics import ReportRequest, VoteRequest
from community.core.config import Settings
from community.modules.auth.email import SUBJECTS, EmailSender, build_message
from community.modules.auth.service import username_base


class TestUsernameBase:
    @pytest.mark.parametrize(
        "email, expected",
        [
            ("alice@example.com", "alice"),
            ("first.last+tag@example.com", "firstlasttag"),
            ("dev_ops-1@example.com", "dev_ops-1"),
            ("...@example.com", "user"),
        ],
    )
    def test_username_base(self, email, expected):
        assert username_base(email) == expected

    def test_long_local_part_is_cut_to_column_width(self):
        assert username_base("a" * 40 + "@example.com") == "a" * 30


class TestSignupValidation:
    def test_accepts_strong_password(self):
        request = SignupRequest(name="Ana", email="ana@example.com", password="Password1")
        assert request.email == "ana@example.com"

    @pytest.mark.parametrize("password", ["short1A", "alllowercase1", "NoDigitsHere"])
    def test_rejects_weak_password(self, password):
        with pytest.raises(ValidationError):
            SignupRequest(name="Ana", email="ana@example.com", password=password)

    def test_rejects_short_name(self):
        with pytest.raises(ValidationError):
            SignupRequest(name="A", email="ana@example.com", password="Password1")

    def test_rejects_long_name(self):
        with pytest.raises(ValidationError):
            SignupRequest(name="A" * 101, email="ana@example.com", password="Password1")


class TestTargetValidation:
    def test_vote_needs_exactly_one_target(self):
        VoteRequest(type="UP", topic_id=1)
        with pytest.raises(ValidationError):
            VoteRequest(type="UP")
        with pytest.raises(ValidationError):
            VoteRequest(type="UP", topic_id=1, reply_id=2)

    def test_report_details_length(self):
        with pytest.raises(ValidationError):
            ReportRequest(reason="SPAM", reply_id=1, details="x" * 1001)


class TestCodeEmail:
    def test_message_has_text_and_html_parts(self):
        msg = build_message(
            "ana@example.com", "123456", "signin", sender="noreply@example.com", expire_minutes=10
        )
        assert msg["Subject"] == SUBJECTS["signin"]
        assert msg["To"] == "ana@example.com"

        parts = msg.get_payload()
        assert [p.get_content_type() for p in parts] == ["text/plain", "text/html"]
        assert "123456" in parts[0].get_payload(decode=True).decode()
        assert "123456" in parts[1].get_payload(decode=True).decode()

    async def test_without_smtp_code_is_logged_not_sent(self, monkeypatch):
        sender = EmailSender(Settings(smtp_host="", smtp_user=""))

        def _fail(*args):
            raise AssertionError("SMTP must not be used")

        monkeypatch.setattr(sender, "_deliver", _fail)
        assert await sender.send_code("ana@example.com", "123456", "signup") is True

    async def test_smtp_failure_reported(self, monkeypatch):
        sender = EmailSender(Settings(smtp_host="smtp.example.com", smtp_user="mailer"))

        def _refuse(*args):
            raise ConnectionRefusedError("no server")

        monkeypatch.setattr(sender, "_deliver", _refuse)
        assert await sender.send_code("ana@example.com", "123456", "signin") is False
