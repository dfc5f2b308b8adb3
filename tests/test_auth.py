"""
Tests for authentication helpers

This test file covers:
- Cookie signing/validation for each cookie kind
- Tampered, cross-kind and expired cookies
- Host cookies for one-time rooms
- Caller identity assembly
- FastAPI dependency helpers
"""

import time

import pytest
from fastapi import HTTPException

from roomqa.auth import (
    caller_from_cookies,
    create_host_cookie,
    create_lecturer_cookie,
    create_voter_cookie,
    new_voter_token,
    require_lecturer,
    require_voter,
    verify_host_cookie,
    verify_lecturer_cookie,
    verify_voter_cookie,
)

SECRET = "test-secret-key-for-hmac"


class TestVoterCookies:
    """Test cases for anonymous voter cookies"""

    def test_new_voter_tokens_are_unique(self) -> None:
        tokens = {new_voter_token() for _ in range(50)}
        assert len(tokens) == 50
        assert all(token.startswith("v-") for token in tokens)

    def test_round_trip(self) -> None:
        cookie = create_voter_cookie("v-abc", SECRET)
        assert verify_voter_cookie(cookie, SECRET) == "v-abc"

    def test_wrong_secret(self) -> None:
        cookie = create_voter_cookie("v-abc", SECRET)
        assert verify_voter_cookie(cookie, "other-secret") is None

    def test_tampered_cookie(self) -> None:
        cookie = create_voter_cookie("v-abc", SECRET)
        tampered = cookie.replace("v-abc", "v-xyz")
        assert verify_voter_cookie(tampered, SECRET) is None

    def test_missing_cookie(self) -> None:
        assert verify_voter_cookie(None, SECRET) is None
        assert verify_voter_cookie("", SECRET) is None

    def test_expired_cookie(self) -> None:
        cookie = create_voter_cookie("v-abc", SECRET)
        time.sleep(2.1)
        assert verify_voter_cookie(cookie, SECRET, max_age=1) is None


class TestCookieKinds:
    """A cookie signed for one purpose is useless for another"""

    def test_voter_cookie_is_not_a_lecturer_session(self) -> None:
        cookie = create_voter_cookie("u-123", SECRET)
        assert verify_lecturer_cookie(cookie, SECRET) is None

    def test_lecturer_session_is_not_a_voter_cookie(self) -> None:
        cookie = create_lecturer_cookie("u-123", SECRET)
        assert verify_voter_cookie(cookie, SECRET) is None
        assert verify_lecturer_cookie(cookie, SECRET) == "u-123"


class TestHostCookies:
    """Test cases for one-time room host cookies"""

    def test_round_trip(self) -> None:
        cookie = create_host_cookie("r-1", "host-secret", SECRET)
        assert verify_host_cookie(cookie, SECRET) == "host-secret"

    def test_token_may_contain_colon(self) -> None:
        cookie = create_host_cookie("r-1", "a:b", SECRET)
        assert verify_host_cookie(cookie, SECRET) == "a:b"

    def test_lecturer_session_is_not_a_host_cookie(self) -> None:
        cookie = create_lecturer_cookie("u-1", SECRET)
        assert verify_host_cookie(cookie, SECRET) is None


class TestCaller:
    """Test cases for building the caller identity"""

    def test_anonymous(self) -> None:
        caller = caller_from_cookies(None, None, SECRET)
        assert caller.user_id is None
        assert caller.host_token is None

    def test_both_credentials(self) -> None:
        caller = caller_from_cookies(
            create_lecturer_cookie("u-1", SECRET),
            create_host_cookie("r-1", "tok", SECRET),
            SECRET,
        )
        assert caller.user_id == "u-1"
        assert caller.host_token == "tok"


class TestDependencies:
    """Test cases for FastAPI dependency helpers"""

    def test_require_voter_valid(self) -> None:
        cookie = create_voter_cookie("v-abc", SECRET)
        assert require_voter(cookie, SECRET) == "v-abc"

    def test_require_voter_missing(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            require_voter(None, SECRET)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Join the room first"

    def test_require_lecturer_invalid(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            require_lecturer("not-a-cookie", SECRET)

        assert exc_info.value.status_code == 401
