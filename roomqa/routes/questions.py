"""
Question routes: asking, voting, reporting and moderation
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, field_validator

from roomqa.deps import get_caller, get_moderation, optional_voter, verify_voter_auth
from roomqa.models import Caller
from roomqa.services.questions import ModerationEngine

router = APIRouter()


# Request/Response models

class AskQuestionRequest(BaseModel):
    """Request to submit a student question"""
    text: str

    @field_validator("text")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if len(v.strip()) == 0:
            raise ValueError("Question cannot be empty")
        return v


class QuestionListResponse(BaseModel):
    count: int
    questions: list[dict[str, Any]]


class QuestionActionResponse(BaseModel):
    """Response for a single-question action"""
    status: str
    question: dict[str, Any]


class QuestionRemovedResponse(BaseModel):
    status: str
    question_id: str


@router.get("/api/rooms/{room_id}/questions")
async def list_questions(
    room_id: str,
    caller: Annotated[Caller, Depends(get_caller)],
    voter_token: Annotated[str | None, Depends(optional_voter)],
    moderation: Annotated[ModerationEngine, Depends(get_moderation)],
) -> QuestionListResponse:
    """
    List the questions the requester may see, most upvoted first
    """
    questions = moderation.list_questions(room_id, caller=caller, voter_token=voter_token)
    return QuestionListResponse(
        count=len(questions),
        questions=[q.public(voter_token) for q in questions],
    )


@router.post("/api/rooms/{room_id}/questions", status_code=201)
async def ask_question(
    room_id: str,
    body: AskQuestionRequest,
    voter_token: Annotated[str, Depends(verify_voter_auth)],
    moderation: Annotated[ModerationEngine, Depends(get_moderation)],
) -> QuestionActionResponse:
    """
    Submit a student question
    """
    question = await moderation.submit(room_id, body.text, voter_token)
    return QuestionActionResponse(status="success", question=question.public(voter_token))


@router.post("/api/questions/{question_id}/upvote")
async def upvote_question(
    question_id: str,
    voter_token: Annotated[str, Depends(verify_voter_auth)],
    moderation: Annotated[ModerationEngine, Depends(get_moderation)],
) -> QuestionActionResponse:
    """
    Toggle the student's upvote on a question
    """
    question = await moderation.toggle_upvote(question_id, voter_token)
    return QuestionActionResponse(status="success", question=question.public(voter_token))


@router.post("/api/questions/{question_id}/report")
async def report_question(
    question_id: str,
    voter_token: Annotated[str, Depends(verify_voter_auth)],
    moderation: Annotated[ModerationEngine, Depends(get_moderation)],
) -> QuestionActionResponse:
    """
    Report a question to the room's host
    """
    question = await moderation.report(question_id, voter_token)
    return QuestionActionResponse(status="reported", question=question.public(voter_token))


@router.post("/api/questions/{question_id}/approve")
async def approve_question(
    question_id: str,
    caller: Annotated[Caller, Depends(get_caller)],
    moderation: Annotated[ModerationEngine, Depends(get_moderation)],
) -> QuestionActionResponse:
    question = await moderation.approve(question_id, caller)
    return QuestionActionResponse(status=question.status.value, question=question.public())


@router.post("/api/questions/{question_id}/answer")
async def mark_answered(
    question_id: str,
    caller: Annotated[Caller, Depends(get_caller)],
    moderation: Annotated[ModerationEngine, Depends(get_moderation)],
) -> QuestionActionResponse:
    question = await moderation.mark_answered(question_id, caller)
    return QuestionActionResponse(status=question.status.value, question=question.public())


@router.post("/api/questions/{question_id}/reject")
async def reject_question(
    question_id: str,
    caller: Annotated[Caller, Depends(get_caller)],
    moderation: Annotated[ModerationEngine, Depends(get_moderation)],
) -> QuestionActionResponse:
    question = await moderation.reject(question_id, caller)
    return QuestionActionResponse(status=question.status.value, question=question.public())


@router.delete("/api/questions/{question_id}")
async def remove_question(
    question_id: str,
    caller: Annotated[Caller, Depends(get_caller)],
    moderation: Annotated[ModerationEngine, Depends(get_moderation)],
) -> QuestionRemovedResponse:
    """
    Delete a question (host only)
    """
    await moderation.remove(question_id, caller)
    return QuestionRemovedResponse(status="removed", question_id=question_id)
