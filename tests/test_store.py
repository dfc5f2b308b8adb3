"""
Tests for the Redis room store

This test file covers:
- Key generation helpers
- Room documents and counters
- Question documents and voter sets
- Cascade deletion
- TTL-based eviction of one-time rooms
- Ask rate limiting
"""

from datetime import UTC, datetime, timedelta

import redis

from roomqa.models import EphemeralRoom, OwnedRoom, Question, QuestionStatus, Room, User
from roomqa.store import RoomStore


def make_room(room_id: str = "r-1", code: str = "ABC123", owner: str = "u-1") -> Room:
    return Room(
        id=room_id,
        name="Lecture",
        code=code,
        owner_display_name="Dr. Ada",
        tenancy=OwnedRoom(owner_ref=owner),
        created_at=datetime.now(UTC),
    )


def make_question(question_id: str = "q-1", room_id: str = "r-1", seq: int = 1) -> Question:
    return Question(
        id=question_id,
        room_id=room_id,
        text="What is a monad?",
        author_tag="Student 1",
        author_token="v-author",
        seq=seq,
        created_at=datetime.now(UTC),
    )


class TestKeyGeneration:
    """Test cases for Redis key generation helpers"""

    def test_room_keys(self, store: RoomStore) -> None:
        assert store.room_key("r-1") == "room:r-1"
        assert store.room_code_key("ABC123") == "roomcode:ABC123"
        assert store.room_questions_key("r-1") == "room:r-1:questions"
        assert store.owner_rooms_key("u-1") == "owner:u-1:rooms"

    def test_question_keys(self, store: RoomStore) -> None:
        assert store.question_key("q-1") == "question:q-1"
        assert store.question_upvotes_key("q-1") == "question:q-1:upvotes"
        assert store.question_reports_key("q-1") == "question:q-1:reports"

    def test_user_email_key_is_case_insensitive(self, store: RoomStore) -> None:
        assert store.user_email_key("Ada@Example.edu") == "user:email:ada@example.edu"


class TestRooms:
    """Test cases for room documents"""

    def test_save_and_get_room(self, store: RoomStore) -> None:
        room = make_room()
        store.save_room(room)

        loaded = store.get_room("r-1")
        assert loaded is not None
        assert loaded.code == "ABC123"
        assert loaded.owner_ref == "u-1"
        assert loaded.participant_count == 0

    def test_get_missing_room(self, store: RoomStore) -> None:
        assert store.get_room("r-missing") is None

    def test_ephemeral_room_roundtrip(self, store: RoomStore) -> None:
        expires = datetime.now(UTC) + timedelta(hours=1)
        room = make_room().model_copy(
            update={"tenancy": EphemeralRoom(expires_at=expires, host_token="secret")}
        )
        store.save_room(room)

        loaded = store.get_room("r-1")
        assert loaded is not None
        assert loaded.ephemeral
        assert loaded.owner_ref is None
        assert loaded.expires_at == expires
        assert loaded.tenancy.host_token == "secret"

    def test_counters_are_merged(self, store: RoomStore) -> None:
        store.save_room(make_room())
        store.increment_participants("r-1")
        store.increment_participants("r-1")
        store.adjust_question_count("r-1", 3)
        store.adjust_question_count("r-1", -1)

        loaded = store.get_room("r-1")
        assert loaded.participant_count == 2
        assert loaded.question_count == 2

    def test_counters_not_stored_in_document(
        self, store: RoomStore, redis_client: redis.Redis
    ) -> None:
        store.save_room(make_room())
        assert "participant_count" not in redis_client.get("room:r-1")

    def test_owner_rooms_newest_first(self, store: RoomStore) -> None:
        older = make_room("r-old", "OLD111")
        older.created_at = datetime.now(UTC) - timedelta(days=1)
        store.save_room(older)
        store.save_room(make_room("r-new", "NEW111"))
        store.save_room(make_room("r-other", "OTH111", owner="u-2"))

        rooms = store.get_owner_rooms("u-1")
        assert [r.id for r in rooms] == ["r-new", "r-old"]


class TestQuestions:
    """Test cases for question documents and voter sets"""

    def test_save_and_get_question(self, store: RoomStore) -> None:
        store.save_question(make_question())

        loaded = store.get_question("q-1")
        assert loaded is not None
        assert loaded.text == "What is a monad?"
        assert loaded.status == QuestionStatus.PENDING
        assert loaded.upvote_count == 0

    def test_toggle_upvote(self, store: RoomStore) -> None:
        store.save_question(make_question())

        assert store.toggle_upvote("q-1", "tok1") is True
        assert store.get_question("q-1").upvote_count == 1

        assert store.toggle_upvote("q-1", "tok1") is False
        assert store.get_question("q-1").upvote_count == 0

    def test_upvote_count_matches_voters(self, store: RoomStore) -> None:
        store.save_question(make_question())
        for token in ["a", "b", "c"]:
            store.toggle_upvote("q-1", token)

        question = store.get_question("q-1")
        assert question.upvote_count == 3
        assert question.upvoted_by == {"a", "b", "c"}

    def test_add_report_once_per_voter(self, store: RoomStore) -> None:
        store.save_question(make_question())

        assert store.add_report("q-1", "tok1") is True
        assert store.add_report("q-1", "tok1") is False
        assert store.get_question("q-1").report_count == 1

    def test_resave_keeps_voter_sets(self, store: RoomStore) -> None:
        question = make_question()
        store.save_question(question)
        store.toggle_upvote("q-1", "tok1")

        question.status = QuestionStatus.APPROVED
        store.save_question(question)

        loaded = store.get_question("q-1")
        assert loaded.status == QuestionStatus.APPROVED
        assert loaded.upvoted_by == {"tok1"}

    def test_author_number_is_stable(self, store: RoomStore) -> None:
        assert store.author_number("r-1", "alice") == 1
        assert store.author_number("r-1", "bob") == 2
        assert store.author_number("r-1", "alice") == 1
        assert store.author_number("r-2", "bob") == 1

    def test_delete_question(self, store: RoomStore) -> None:
        question = make_question()
        store.save_question(question)
        store.toggle_upvote("q-1", "tok1")

        assert store.delete_question(question) is True
        assert store.get_question("q-1") is None
        assert store.get_room_questions("r-1") == []
        assert store.delete_question(question) is False


class TestDeleteRoom:
    """Test cases for cascade deletion"""

    def test_delete_room_removes_questions(
        self, store: RoomStore, redis_client: redis.Redis
    ) -> None:
        room = make_room()
        store.claim_code(room.code, room.id)
        store.save_room(room)
        for i in range(3):
            store.save_question(make_question(f"q-{i}", seq=i))
            store.toggle_upvote(f"q-{i}", "tok1")

        deleted = store.delete_room(room)

        assert deleted == 3
        assert store.get_room("r-1") is None
        assert store.get_room_questions("r-1") == []
        assert store.find_room_id_by_code("ABC123") is None
        assert store.get_owner_rooms("u-1") == []
        assert redis_client.keys("question:*") == []


class TestEviction:
    """Test cases for TTL-based eviction"""

    def test_apply_room_expiry(self, store: RoomStore, redis_client: redis.Redis) -> None:
        room = make_room()
        store.claim_code(room.code, room.id)
        store.save_room(room)
        store.save_question(make_question())
        store.increment_participants(room.id)

        store.apply_room_expiry(room.id, datetime.now(UTC) + timedelta(hours=2))

        for key in ["room:r-1", "roomcode:ABC123", "question:q-1", "room:r-1:participants"]:
            ttl = redis_client.ttl(key)
            assert 0 < ttl <= 7200, key

    def test_resave_keeps_expiry(self, store: RoomStore, redis_client: redis.Redis) -> None:
        room = make_room()
        store.save_room(room)
        store.apply_room_expiry(room.id, datetime.now(UTC) + timedelta(hours=2))

        room.questions_visible_to_all = False
        store.save_room(room)

        assert redis_client.ttl("room:r-1") > 0

    def test_apply_expiry_to_missing_room(self, store: RoomStore) -> None:
        store.apply_room_expiry("r-missing", datetime.now(UTC))


class TestRateLimit:
    """Test cases for Ask rate limiting"""

    def test_second_question_is_limited(self, store: RoomStore) -> None:
        assert store.check_ask_rate_limit("r-1", "tok1", 10) == (True, 0)

        allowed, retry_after = store.check_ask_rate_limit("r-1", "tok1", 10)
        assert allowed is False
        assert 0 < retry_after <= 10

    def test_limit_is_per_voter(self, store: RoomStore) -> None:
        store.check_ask_rate_limit("r-1", "tok1", 10)
        assert store.check_ask_rate_limit("r-1", "tok2", 10) == (True, 0)


class TestUsers:
    """Test cases for user documents"""

    def test_create_user_once_per_email(self, store: RoomStore) -> None:
        user = User(
            id="u-1",
            name="Ada",
            email="ada@example.edu",
            password_hash="x$y",
            created_at=datetime.now(UTC),
        )
        assert store.create_user(user) is True
        assert store.create_user(user.model_copy(update={"id": "u-2"})) is False

        assert store.get_user_by_email("ADA@example.edu").id == "u-1"
        assert store.get_user("u-2") is None
