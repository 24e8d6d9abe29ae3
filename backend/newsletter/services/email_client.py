"""Email delivery API client and template rendering."""
import logging
from pathlib import Path
from typing import Optional

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape
from pydantic import SecretStr

from newsletter.errors import TransportError
from newsletter.logging_config import redact_email

logger = logging.getLogger(__name__)

# Template setup - load from newsletter/templates/emails/
TEMPLATE_DIR = Path(__file__).parent.parent / "templates" / "emails"


class TemplateRenderer:
    """Jinja2 template renderer for email templates."""

    def __init__(self, template_dir: Path = TEMPLATE_DIR):
        self.template_dir = template_dir
        self._env: Optional[Environment] = None

    def _get_env(self) -> Environment:
        """Lazy load the Jinja2 environment."""
        if self._env is None:
            self._env = Environment(
                loader=FileSystemLoader(str(self.template_dir)),
                autoescape=select_autoescape(['html', 'xml']),
            )
        return self._env

    def render(self, template_name: str, **context) -> str:
        """Render a template with the given context.

        Missing or broken templates raise jinja2's TemplateError; a
        confirmation email without its link is worse than no email.
        """
        template = self._get_env().get_template(template_name)
        return template.render(**context)


template_renderer = TemplateRenderer()


class EmailClient:
    """Client for the transactional email HTTP API.

    Sends ``POST {base_url}/email`` with the server token header and a JSON
    body with the keys ``From``, ``To``, ``Subject``, ``HtmlBody`` and
    ``TextBody``. Any non-2xx answer or a timeout raises TransportError.
    """

    TOKEN_HEADER = "X-Postmark-Server-Token"

    def __init__(
        self,
        base_url: str,
        sender: str,
        authorization_token: SecretStr,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.sender = sender
        self._authorization_token = authorization_token
        self._http_client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def send_email(
        self,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> None:
        url = f"{self.base_url}/email"
        request_body = {
            "From": self.sender,
            "To": recipient,
            "Subject": subject,
            "HtmlBody": html_content,
            "TextBody": text_content,
        }
        redacted = redact_email(recipient)
        logger.debug(f"Email API: sending '{subject}' to {redacted}")
        try:
            response = await self._http_client.post(
                url,
                headers={self.TOKEN_HEADER: self._authorization_token.get_secret_value()},
                json=request_body,
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise TransportError(f"Email API timed out sending to {redacted}") from e
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"Email API rejected message to {redacted}: status={e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Email API request failed for {redacted}: {type(e).__name__}") from e
        logger.info(f"Email API: message accepted for {redacted}")

    async def aclose(self) -> None:
        await self._http_client.aclose()
