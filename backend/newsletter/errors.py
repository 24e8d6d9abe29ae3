"""Exception hierarchy shared by the subscription and publishing workflows.

Routers map each class to a status code; every wrapper is raised with
``raise ... from exc`` so the underlying cause stays attached for logging.
"""


class NewsletterError(Exception):
    """Base class for every error raised by the newsletter core."""


class ValidationError(NewsletterError):
    """Malformed subscriber input (name or email)."""


class AuthenticationError(NewsletterError):
    """The request did not carry usable credentials."""


class InvalidCredentials(AuthenticationError):
    """Username or password did not match.

    Raised identically for unknown usernames and wrong passwords.
    """


class UnexpectedAuthError(NewsletterError):
    """Credential verification failed for a reason other than a mismatch."""


class StorageError(NewsletterError):
    """A database operation failed."""


class TransportError(NewsletterError):
    """The email delivery API rejected the request or timed out."""


class TokenUnauthorized(NewsletterError):
    """A subscription token does not resolve to a subscriber."""


def error_chain(exc: BaseException) -> str:
    """Render an exception and its causes, outermost first."""
    lines = [f"{type(exc).__name__}: {exc}"]
    current = exc.__cause__ or exc.__context__
    seen = {id(exc)}
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        lines.append(f"Caused by:\n\t{type(current).__name__}: {current}")
        current = current.__cause__ or current.__context__
    return "\n".join(lines)
