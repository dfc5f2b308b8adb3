"""
Lecturer account routes
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

import roomqa.config
from roomqa.auth import LECTURER_COOKIE, create_lecturer_cookie
from roomqa.deps import get_directory, get_notifier, verify_lecturer_auth
from roomqa.directory import UserDirectory
from roomqa.errors import InvalidCredentials
from roomqa.models import User
from roomqa.notifier import Notifier

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth")


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: str
    name: str
    email: str


def set_session(response: Response, user: User) -> None:
    settings = roomqa.config.settings
    response.set_cookie(
        key=LECTURER_COOKIE,
        value=create_lecturer_cookie(user.id, settings.secret_key),
        httponly=True,
        secure=False,  # Set to True in production with HTTPS
        samesite="lax",
        max_age=settings.cookie_max_age,
    )


@router.post("/register", status_code=201)
async def register(
    body: RegisterRequest,
    response: Response,
    directory: Annotated[UserDirectory, Depends(get_directory)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> UserResponse:
    """
    Create a lecturer account and log it in
    """
    user = directory.create(body.name, body.email, body.password)
    set_session(response, user)

    try:
        notifier.send("welcome", user.email, {"name": user.name})
    except Exception:
        # Account creation must not depend on the mail server
        logger.exception("Could not send welcome email to %s", user.email)

    return UserResponse(id=user.id, name=user.name, email=user.email)


@router.post("/login")
async def login(
    body: LoginRequest,
    response: Response,
    directory: Annotated[UserDirectory, Depends(get_directory)],
) -> UserResponse:
    user = directory.find_by_email(body.email)
    if user is None or not directory.verify_password(user, body.password):
        raise InvalidCredentials()

    set_session(response, user)
    return UserResponse(id=user.id, name=user.name, email=user.email)


@router.post("/logout")
async def logout(response: Response) -> dict[str, str]:
    response.delete_cookie(LECTURER_COOKIE)
    return {"status": "logged_out"}


@router.get("/me")
async def me(
    user_id: Annotated[str, Depends(verify_lecturer_auth)],
    directory: Annotated[UserDirectory, Depends(get_directory)],
) -> UserResponse:
    user = directory.find_by_id(user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authorized, user not found")
    return UserResponse(id=user.id, name=user.name, email=user.email)
