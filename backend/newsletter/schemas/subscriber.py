from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict

from newsletter.errors import ValidationError

MAX_NAME_LENGTH = 256
FORBIDDEN_NAME_CHARACTERS = frozenset('/()"<>\\{}')


def parse_subscriber_name(value: str) -> str:
    """Return ``value`` if it is usable as a display name.

    Rejects blank names, names longer than MAX_NAME_LENGTH and names
    containing characters that are troublesome in HTML or shell contexts.
    """
    if not value or not value.strip():
        raise ValidationError("Subscriber name must not be empty.")
    if len(value) > MAX_NAME_LENGTH:
        raise ValidationError(f"Subscriber name must be at most {MAX_NAME_LENGTH} characters long.")
    if any(c in FORBIDDEN_NAME_CHARACTERS for c in value):
        raise ValidationError(f"{value!r} is not a valid subscriber name.")
    return value


def parse_subscriber_email(value: str) -> str:
    """Return the normalized form of ``value`` or raise ValidationError.

    Only a bare address is accepted: display-name forms such as
    ``Name <addr>`` and surrounding whitespace are rejected.
    """
    try:
        return validate_email(value, check_deliverability=False).normalized
    except EmailNotValidError as e:
        raise ValidationError(f"{value!r} is not a valid subscriber email.") from e


class NewSubscriber(BaseModel):
    """A subscribe request that passed validation."""
    model_config = ConfigDict(frozen=True)

    email: str
    name: str

    @classmethod
    def parse(cls, name: str, email: str) -> "NewSubscriber":
        return cls(
            name=parse_subscriber_name(name),
            email=parse_subscriber_email(email),
        )


class ConfirmedSubscriber(BaseModel):
    model_config = ConfigDict(frozen=True)

    email: str


class SubscribeResponse(BaseModel):
    message: str

