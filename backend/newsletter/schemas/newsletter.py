from uuid import UUID

from pydantic import BaseModel


class IssueContent(BaseModel):
    html: str
    text: str


class NewsletterIssue(BaseModel):
    """Body of a publish request. Never persisted."""
    title: str
    content: IssueContent


class PublishResponse(BaseModel):
    user_id: UUID
    delivered: int
    skipped: int
