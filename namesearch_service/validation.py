"""
Request validation for the search and AI routes
"""
from typing import Any, List, Tuple
import re

from pydantic import ValidationError

from .errors import RequestValidationFailed
from .schemas import ChatRequest

USERNAME_MAX_LENGTH = 100

# Whole string: starts and ends with a letter or digit, "_" and "-" allowed between
SECURE_USERNAME_REGEX = re.compile(r"[a-zA-Z0-9]([a-zA-Z0-9_-]{0,98}[a-zA-Z0-9])?")
_LEADING_SPECIAL = re.compile(r"^[._-]")
_TRAILING_SPECIAL = re.compile(r"[._-]\Z")


def username_issues(username: Any) -> List[str]:
    """Every rule the username breaks, in rule order"""
    if not isinstance(username, str):
        return ["Username is required"]

    issues = []
    if len(username) < 1:
        issues.append("Username is required")
    if len(username) > USERNAME_MAX_LENGTH:
        issues.append("Username must be less than 100 characters")
    if not username.strip():
        issues.append("Username cannot be empty or whitespace only")
    if ".." in username:
        issues.append("Username cannot contain consecutive dots")
    if _LEADING_SPECIAL.search(username):
        issues.append("Username cannot start with a dot, underscore, or hyphen")
    if _TRAILING_SPECIAL.search(username):
        issues.append("Username cannot end with a dot, underscore, or hyphen")
    if not SECURE_USERNAME_REGEX.fullmatch(username):
        issues.append(
            "Username must start and end with a letter or number, and can only "
            "contain letters, numbers, hyphens, and underscores in between"
        )
    return issues


def validate_username(username: Any) -> str:
    """
    Validate a username for the search routes

    Returns:
        The username, unchanged

    Raises:
        RequestValidationFailed: listing every broken rule
    """
    issues = username_issues(username)
    if issues:
        raise RequestValidationFailed.from_issues(("username", issue) for issue in issues)
    return username


def _format_pydantic_errors(exc: ValidationError) -> List[Tuple[str, str]]:
    issues = []
    for error in exc.errors():
        path = ".".join(str(part) for part in error.get("loc", ()))
        message = error.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        issues.append((path, message))
    return issues


def validate_chat_request(payload: Any) -> ChatRequest:
    """Validate an AI analyze request body"""
    try:
        return ChatRequest.model_validate(payload)
    except ValidationError as e:
        raise RequestValidationFailed.from_issues(_format_pydantic_errors(e))
