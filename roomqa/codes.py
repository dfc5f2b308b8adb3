"""Room code generation."""

import secrets
import string
from collections.abc import Callable

from roomqa.errors import CodeSpaceExhausted

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6


def draw_code() -> str:
    """Draw one candidate code uniformly from A-Z0-9"""
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


def generate_room_code(
    claim: Callable[[str], bool],
    attempts: int = 10,
    draw: Callable[[], str] = draw_code,
) -> str:
    """
    Generate a room code that no other room holds

    Args:
        claim: Atomically reserves a code in the store, returning False if
            another room already holds it
        attempts: Number of draws before giving up
        draw: Candidate source (overridable for tests)

    Returns:
        The reserved code

    Raises:
        CodeSpaceExhausted: If every draw collided
    """
    for _ in range(attempts):
        code = draw()
        if claim(code):
            return code

    raise CodeSpaceExhausted(
        f"Could not generate unique room code after {attempts} attempts"
    )
