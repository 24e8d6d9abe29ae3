"""HTTP Basic credential extraction for the publishing endpoint."""
import base64
import binascii
from typing import Mapping

from pydantic import SecretStr

from newsletter.errors import AuthenticationError
from newsletter.services.password_service import Credentials

PUBLISH_REALM = "publish"
WWW_AUTHENTICATE = f'Basic realm="{PUBLISH_REALM}"'


def basic_authentication(headers: Mapping[str, str]) -> Credentials:
    """Decode ``Authorization: Basic ...`` into username and password.

    The decoded value is split on the first colon, so passwords may contain
    colons. Any malformed header raises AuthenticationError.
    """
    header_value = headers.get("authorization")
    if header_value is None:
        raise AuthenticationError("The 'Authorization' header was missing.")

    if not header_value.startswith("Basic "):
        raise AuthenticationError("The authorization scheme was not 'Basic'.")
    encoded_segment = header_value[len("Basic "):]

    try:
        decoded_bytes = base64.b64decode(encoded_segment, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AuthenticationError("Failed to base64-decode 'Basic' credentials.") from e

    try:
        decoded_credentials = decoded_bytes.decode("utf-8")
    except UnicodeDecodeError as e:
        raise AuthenticationError("The decoded credential string is not valid UTF-8.") from e

    username, separator, password = decoded_credentials.partition(":")
    if not separator:
        raise AuthenticationError("A password must be provided in 'Basic' auth.")

    return Credentials(username=username, password=SecretStr(password))
