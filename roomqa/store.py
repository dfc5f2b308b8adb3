"""
Redis-backed document store for rooms, questions and lecturer accounts
"""

import json
from datetime import datetime
from typing import Any

import redis

from roomqa.models import Question, Room, User


class RoomStore:
    """Redis store wrapper for all room and question records"""

    def __init__(self, redis_client: redis.Redis) -> None:
        """
        Initialize the store

        Args:
            redis_client: Redis client instance (created with decode_responses=True)
        """
        self.redis = redis_client

    # Key generation helpers

    def room_key(self, room_id: str) -> str:
        """Generate Redis key for a room document"""
        return f"room:{room_id}"

    def room_code_key(self, code: str) -> str:
        """Generate Redis key for the unique code index"""
        return f"roomcode:{code}"

    def owner_rooms_key(self, owner_ref: str) -> str:
        """Generate Redis key for the set of rooms a lecturer owns"""
        return f"owner:{owner_ref}:rooms"

    def room_questions_key(self, room_id: str) -> str:
        """Generate Redis key for the set of question IDs in a room"""
        return f"room:{room_id}:questions"

    def room_participants_key(self, room_id: str) -> str:
        """Generate Redis key for the participant counter"""
        return f"room:{room_id}:participants"

    def room_question_count_key(self, room_id: str) -> str:
        """Generate Redis key for the question counter"""
        return f"room:{room_id}:question_count"

    def room_question_seq_key(self, room_id: str) -> str:
        """Generate Redis key for the question sequence"""
        return f"room:{room_id}:question_seq"

    def room_authors_key(self, room_id: str) -> str:
        """Generate Redis key for the voter token -> author number hash"""
        return f"room:{room_id}:authors"

    def room_author_seq_key(self, room_id: str) -> str:
        """Generate Redis key for the author number sequence"""
        return f"room:{room_id}:author_seq"

    def question_key(self, question_id: str) -> str:
        """Generate Redis key for a question document"""
        return f"question:{question_id}"

    def question_upvotes_key(self, question_id: str) -> str:
        """Generate Redis key for the set of upvoting voter tokens"""
        return f"question:{question_id}:upvotes"

    def question_reports_key(self, question_id: str) -> str:
        """Generate Redis key for the set of reporting voter tokens"""
        return f"question:{question_id}:reports"

    def rate_limit_key(self, room_id: str, voter_token: str) -> str:
        """Generate Redis key for Ask rate limiting"""
        return f"room:{room_id}:ratelimit:ask:{voter_token}"

    def user_email_key(self, email: str) -> str:
        """Generate Redis key for the email -> user ID index"""
        return f"user:email:{email.lower()}"

    def user_key(self, user_id: str) -> str:
        """Generate Redis key for a user document"""
        return f"user:{user_id}"

    # Room code index

    def claim_code(self, code: str, room_id: str) -> bool:
        """
        Reserve a room code for a room

        Args:
            code: Candidate room code
            room_id: Room that will hold the code

        Returns:
            True if the code was free and is now reserved, False otherwise
        """
        return bool(self.redis.set(self.room_code_key(code), room_id, nx=True))

    def release_code(self, code: str) -> None:
        """Free a room code once its room is gone"""
        self.redis.delete(self.room_code_key(code))

    def find_room_id_by_code(self, code: str) -> str | None:
        """
        Look up a room ID by its code

        Args:
            code: Room code (already normalized to uppercase)

        Returns:
            Room ID or None if no room holds the code
        """
        return self.redis.get(self.room_code_key(code))

    # Room operations

    def save_room(self, room: Room) -> None:
        """
        Store a room document (counters are kept in their own keys)

        Args:
            room: Room to store
        """
        data = room.model_dump_json(exclude={"question_count", "participant_count"})
        self.redis.set(self.room_key(room.id), data, keepttl=True)

        if room.owner_ref is not None:
            self.redis.sadd(self.owner_rooms_key(room.owner_ref), room.id)

    def get_room(self, room_id: str) -> Room | None:
        """
        Get a room with its current counters

        Args:
            room_id: Room ID

        Returns:
            Room or None if not found
        """
        raw = self.redis.get(self.room_key(room_id))
        if raw is None:
            return None

        data: dict[str, Any] = json.loads(raw)
        data["participant_count"] = int(
            self.redis.get(self.room_participants_key(room_id)) or 0
        )
        data["question_count"] = int(
            self.redis.get(self.room_question_count_key(room_id)) or 0
        )
        return Room.model_validate(data)

    def get_owner_rooms(self, owner_ref: str) -> list[Room]:
        """
        Get all rooms a lecturer owns

        Args:
            owner_ref: Lecturer user ID

        Returns:
            List of rooms, newest first
        """
        rooms = []
        for room_id in self.redis.smembers(self.owner_rooms_key(owner_ref)):
            room = self.get_room(room_id)
            if room is not None:
                rooms.append(room)

        rooms.sort(key=lambda r: r.created_at, reverse=True)
        return rooms

    def increment_participants(self, room_id: str) -> int:
        """Count one more participant and return the new total"""
        return int(self.redis.incr(self.room_participants_key(room_id)))

    def adjust_question_count(self, room_id: str, delta: int) -> int:
        """Move the question counter by delta and return the new total"""
        return int(self.redis.incrby(self.room_question_count_key(room_id), delta))

    def delete_room(self, room: Room) -> int:
        """
        Delete a room and everything it owns

        Questions are removed before the room record, and the room's code is
        released from the unique index.

        Args:
            room: Room to delete

        Returns:
            Number of questions deleted
        """
        question_ids = self.redis.smembers(self.room_questions_key(room.id))
        for question_id in question_ids:
            self._delete_question_keys(question_id)

        self.redis.delete(
            self.room_questions_key(room.id),
            self.room_participants_key(room.id),
            self.room_question_count_key(room.id),
            self.room_question_seq_key(room.id),
            self.room_authors_key(room.id),
            self.room_author_seq_key(room.id),
            self.room_key(room.id),
        )

        if room.owner_ref is not None:
            self.redis.srem(self.owner_rooms_key(room.owner_ref), room.id)

        # Only release the code if it still points at this room
        if self.find_room_id_by_code(room.code) == room.id:
            self.release_code(room.code)

        return len(question_ids)

    def apply_room_expiry(self, room_id: str, when: datetime) -> None:
        """
        Schedule eviction of every key belonging to a room

        Args:
            room_id: Room ID
            when: Absolute time at which the keys disappear
        """
        room = self.get_room(room_id)
        if room is None:
            return

        keys = [
            self.room_key(room_id),
            self.room_code_key(room.code),
            self.room_questions_key(room_id),
            self.room_participants_key(room_id),
            self.room_question_count_key(room_id),
            self.room_question_seq_key(room_id),
            self.room_authors_key(room_id),
            self.room_author_seq_key(room_id),
        ]
        for question_id in self.redis.smembers(self.room_questions_key(room_id)):
            keys.extend(
                [
                    self.question_key(question_id),
                    self.question_upvotes_key(question_id),
                    self.question_reports_key(question_id),
                ]
            )

        for key in keys:
            self.redis.expireat(key, when)

    # Question operations

    def next_question_seq(self, room_id: str) -> int:
        """Return the next per-room question sequence number"""
        return int(self.redis.incr(self.room_question_seq_key(room_id)))

    def author_number(self, room_id: str, voter_token: str) -> int:
        """
        Get the stable pseudonym number of a voter inside a room

        Args:
            room_id: Room ID
            voter_token: Anonymous session token

        Returns:
            Author number, assigned on the voter's first question
        """
        key = self.room_authors_key(room_id)
        existing = self.redis.hget(key, voter_token)
        if existing is not None:
            return int(existing)

        number = int(self.redis.incr(self.room_author_seq_key(room_id)))
        if self.redis.hsetnx(key, voter_token, number):
            return number

        # Another request assigned a number first
        return int(self.redis.hget(key, voter_token))

    def save_question(self, question: Question) -> None:
        """
        Store a question document (voter sets are kept in their own keys)

        Args:
            question: Question to store
        """
        data = question.model_dump_json(exclude={"upvoted_by", "reported_by"})
        self.redis.set(self.question_key(question.id), data, keepttl=True)
        self.redis.sadd(self.room_questions_key(question.room_id), question.id)

    def get_question(self, question_id: str) -> Question | None:
        """
        Get a question with its voter sets

        Args:
            question_id: Question ID

        Returns:
            Question or None if not found
        """
        raw = self.redis.get(self.question_key(question_id))
        if raw is None:
            return None

        data: dict[str, Any] = json.loads(raw)
        data["upvoted_by"] = self.redis.smembers(self.question_upvotes_key(question_id))
        data["reported_by"] = self.redis.smembers(self.question_reports_key(question_id))
        return Question.model_validate(data)

    def get_room_questions(self, room_id: str) -> list[Question]:
        """
        Get all questions in a room (unordered)

        Args:
            room_id: Room ID

        Returns:
            List of questions
        """
        questions = []
        for question_id in self.redis.smembers(self.room_questions_key(room_id)):
            question = self.get_question(question_id)
            if question is not None:
                questions.append(question)
        return questions

    def toggle_upvote(self, question_id: str, voter_token: str) -> bool:
        """
        Add the voter's upvote, or take it back if already present

        Args:
            question_id: Question ID
            voter_token: Anonymous session token

        Returns:
            True if the upvote is now present, False if it was removed
        """
        key = self.question_upvotes_key(question_id)
        if self.redis.srem(key, voter_token):
            return False
        self.redis.sadd(key, voter_token)
        self._match_question_expiry(question_id, key)
        return True

    def add_report(self, question_id: str, voter_token: str) -> bool:
        """
        Record a report from a voter

        Returns:
            True if this voter had not reported the question before
        """
        key = self.question_reports_key(question_id)
        added = bool(self.redis.sadd(key, voter_token))
        self._match_question_expiry(question_id, key)
        return added

    def _match_question_expiry(self, question_id: str, key: str) -> None:
        """Give a voter set the same eviction time as its question"""
        ttl = self.redis.pttl(self.question_key(question_id))
        if ttl > 0:
            self.redis.pexpire(key, ttl)

    def delete_question(self, question: Question) -> bool:
        """
        Delete a question

        Args:
            question: Question to delete

        Returns:
            True if question was deleted, False if not found
        """
        self.redis.srem(self.room_questions_key(question.room_id), question.id)
        return self._delete_question_keys(question.id)

    def _delete_question_keys(self, question_id: str) -> bool:
        result = self.redis.delete(self.question_key(question_id))
        self.redis.delete(
            self.question_upvotes_key(question_id),
            self.question_reports_key(question_id),
        )
        return result > 0

    def check_ask_rate_limit(
        self, room_id: str, voter_token: str, window: int
    ) -> tuple[bool, int]:
        """
        Check if a voter can ask a question (rate limiting)

        Args:
            room_id: Room ID
            voter_token: Anonymous session token
            window: Rate limit window in seconds

        Returns:
            Tuple of (allowed, retry_after_seconds)
        """
        key = self.rate_limit_key(room_id, voter_token)

        if self.redis.set(key, "1", ex=window, nx=True):
            return (True, 0)

        ttl = self.redis.ttl(key)
        return (False, max(0, ttl))

    # User operations

    def create_user(self, user: User) -> bool:
        """
        Store a new user unless the email is already registered

        Returns:
            True if stored, False if the email is taken
        """
        if not self.redis.set(self.user_email_key(user.email), user.id, nx=True):
            return False
        self.redis.set(self.user_key(user.id), user.model_dump_json())
        return True

    def get_user(self, user_id: str) -> User | None:
        raw = self.redis.get(self.user_key(user_id))
        if raw is None:
            return None
        return User.model_validate_json(raw)

    def get_user_by_email(self, email: str) -> User | None:
        user_id = self.redis.get(self.user_email_key(email))
        if user_id is None:
            return None
        return self.get_user(user_id)
