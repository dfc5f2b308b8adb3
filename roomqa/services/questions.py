"""
Question moderation: submission, voting, reporting and the status machine
"""

import logging
import uuid
from collections.abc import Callable
from datetime import datetime

from roomqa.errors import (
    Forbidden,
    InvalidTransition,
    QuestionNotFound,
    RateLimited,
    RoomClosed,
    ValidationError,
)
from roomqa.models import Caller, EventType, Question, QuestionStatus, Room
from roomqa.services.fanout import Connection
from roomqa.services.rooms import RoomManager

logger = logging.getLogger(__name__)

# Allowed source states for each owner action
APPROVE_FROM = {QuestionStatus.PENDING}
ANSWER_FROM = {QuestionStatus.PENDING, QuestionStatus.APPROVED}
REJECT_FROM = {QuestionStatus.PENDING}


def display_order(questions: list[Question]) -> list[Question]:
    """Most upvoted first; ties go to the earliest question"""
    return sorted(questions, key=lambda q: (-q.upvote_count, q.created_at, q.seq))


class ModerationEngine:
    """Question CRUD and moderation on top of the room lifecycle"""

    def __init__(self, rooms: RoomManager) -> None:
        self.rooms = rooms
        self.store = rooms.store
        self.gateway = rooms.gateway
        self.settings = rooms.settings

    def now(self) -> datetime:
        return self.rooms.clock()

    def get_question(self, question_id: str) -> Question:
        question = self.store.get_question(question_id)
        if question is None:
            raise QuestionNotFound()
        return question

    def _open_room_for(self, question: Question) -> Room:
        room = self.rooms.get_room(question.room_id)
        if not room.is_open(self.now()):
            raise RoomClosed("Room is closed")
        return room

    def _owned_question(self, question_id: str, caller: Caller) -> tuple[Question, Room]:
        question = self.get_question(question_id)
        room = self.rooms.get_room(question.room_id)
        if not room.is_owned_by(caller):
            raise Forbidden("Only the room's host can moderate questions")
        return question, room

    def _audience(
        self, room: Room, question: Question
    ) -> Callable[[Connection], bool] | None:
        """Private rooms only show a question to the host and its author"""
        if room.questions_visible_to_all:
            return None
        author_token = question.author_token
        return lambda conn: conn.is_host or conn.voter_token == author_token

    # Listing

    def list_questions(
        self,
        room_id: str,
        caller: Caller | None = None,
        voter_token: str | None = None,
    ) -> list[Question]:
        """
        List the questions a viewer may see, in display order

        Args:
            room_id: Room ID
            caller: Credentials of a possible host
            voter_token: Anonymous session token of a student viewer

        Returns:
            Questions sorted by upvotes, then creation time
        """
        room = self.rooms.get_room(room_id)
        questions = self.store.get_room_questions(room_id)

        if caller is None or not room.is_owned_by(caller):
            questions = [q for q in questions if q.status != QuestionStatus.REJECTED]
            if not room.questions_visible_to_all:
                questions = [
                    q for q in questions
                    if voter_token is not None and q.author_token == voter_token
                ]

        return display_order(questions)

    # Student actions

    async def submit(self, room_id: str, text: str, voter_token: str) -> Question:
        """
        Post a new question to a room

        Args:
            room_id: Room ID
            text: Question text
            voter_token: Anonymous session token of the author

        Returns:
            The new question, in pending state

        Raises:
            RoomClosed: If the room is closed or expired
            ValidationError: If the text is empty or too long
            RateLimited: If the author asked too recently
        """
        room = self.rooms.get_room(room_id)
        if not room.is_open(self.now()):
            raise RoomClosed("Room is closed. No new questions can be asked.")

        text = text.strip() if text else ""
        if not text:
            raise ValidationError("Question cannot be empty")
        if len(text) > self.settings.max_question_length:
            raise ValidationError(
                f"Question must be {self.settings.max_question_length} characters or less"
            )

        if self.settings.rate_limit_window > 0:
            allowed, retry_after = self.store.check_ask_rate_limit(
                room_id, voter_token, self.settings.rate_limit_window
            )
            if not allowed:
                raise RateLimited(retry_after)

        author = self.store.author_number(room_id, voter_token)
        question = Question(
            id=f"q-{uuid.uuid4().hex}",
            room_id=room_id,
            text=text,
            author_tag=f"Student {author}",
            author_token=voter_token,
            seq=self.store.next_question_seq(room_id),
            created_at=self.now(),
        )
        self.store.save_question(question)
        self.store.adjust_question_count(room_id, 1)
        if room.ephemeral:
            self.rooms.schedule_eviction(room)

        logger.info("Question %s posted in %s by %s", question.id, room.code, question.author_tag)

        await self.gateway.publish(
            room.code,
            EventType.NEW_QUESTION,
            {"question": question.public()},
            audience=self._audience(room, question),
        )
        return question

    async def toggle_upvote(self, question_id: str, voter_token: str) -> Question:
        """Upvote a question, or take the voter's upvote back"""
        question = self.get_question(question_id)
        room = self._open_room_for(question)

        self.store.toggle_upvote(question_id, voter_token)
        question = self.get_question(question_id)

        await self.gateway.publish(
            room.code,
            EventType.QUESTION_UPVOTE_UPDATE,
            {"questionId": question.id, "upvotes": question.upvote_count},
            audience=self._audience(room, question),
        )
        return question

    async def report(self, question_id: str, voter_token: str) -> Question:
        """Flag a question for the host; reporting twice has no extra effect"""
        question = self.get_question(question_id)
        room = self._open_room_for(question)

        if not self.store.add_report(question_id, voter_token):
            return question

        question = self.get_question(question_id)
        logger.info("Question %s reported (%d reports)", question.id, question.report_count)
        await self.gateway.publish(
            room.code,
            EventType.QUESTION_REPORTED,
            {"questionId": question.id, "reports": question.report_count},
            audience=lambda conn: conn.is_host,
        )
        return question

    # Owner actions

    async def approve(self, question_id: str, caller: Caller) -> Question:
        question, room = self._owned_question(question_id, caller)
        self._transition(question, APPROVE_FROM, QuestionStatus.APPROVED)
        self.store.save_question(question)

        await self.gateway.publish(
            room.code,
            EventType.QUESTION_APPROVAL,
            {"questionId": question.id},
            audience=self._audience(room, question),
        )
        return question

    async def mark_answered(self, question_id: str, caller: Caller) -> Question:
        question, room = self._owned_question(question_id, caller)
        self._transition(question, ANSWER_FROM, QuestionStatus.ANSWERED)
        question.answered_at = self.now()
        self.store.save_question(question)

        await self.gateway.publish(
            room.code,
            EventType.QUESTION_MARKED_ANSWERED,
            {"questionId": question.id},
            audience=self._audience(room, question),
        )
        return question

    async def reject(self, question_id: str, caller: Caller) -> Question:
        question, room = self._owned_question(question_id, caller)
        self._transition(question, REJECT_FROM, QuestionStatus.REJECTED)
        self.store.save_question(question)

        await self.gateway.publish(
            room.code,
            EventType.QUESTION_REJECTED,
            {"questionId": question.id},
            audience=self._audience(room, question),
        )
        return question

    async def remove(self, question_id: str, caller: Caller) -> None:
        question, room = self._owned_question(question_id, caller)
        if not self.store.delete_question(question):
            raise QuestionNotFound()
        self.store.adjust_question_count(room.id, -1)

        logger.info("Question %s removed from %s", question.id, room.code)
        await self.gateway.publish(
            room.code,
            EventType.QUESTION_REMOVED,
            {"questionId": question.id},
            audience=self._audience(room, question),
        )

    def _transition(
        self,
        question: Question,
        allowed_from: set[QuestionStatus],
        target: QuestionStatus,
    ) -> None:
        if question.status not in allowed_from:
            raise InvalidTransition(
                f"Cannot move question from {question.status.value} to {target.value}"
            )
        logger.info(
            "Question %s %s -> %s", question.id, question.status.value, target.value
        )
        question.status = target
