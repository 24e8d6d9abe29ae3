"""Password hashing and credential validation for publishers."""
import logging
from dataclasses import dataclass
from uuid import UUID

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from pydantic import SecretStr

from newsletter.errors import InvalidCredentials, UnexpectedAuthError
from newsletter.services.credential_store import CredentialStore
from newsletter.services.hashing_pool import HashingPool

logger = logging.getLogger(__name__)

# Argon2id v19, m=15000 KiB, t=2, p=1. Verification reads the parameters from
# the stored PHC string, so these only apply to newly computed hashes.
password_hasher = PasswordHasher(
    time_cost=2,
    memory_cost=15000,
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=Type.ID,
)

# Verified in place of a real hash when the username is unknown, so both
# failure paths pay for one full Argon2 computation with the same parameters.
DUMMY_PASSWORD_HASH = (
    "$argon2id$v=19$m=15000,t=2,p=1$"
    "gZiV/M1gPc22ElAH/Jh1Hw$"
    "CWOrkoo7oJBQ/iyh7uJ0LO2aLEfrHwTWllSAxT0zRno"
)


@dataclass(frozen=True)
class Credentials:
    username: str
    password: SecretStr


def verify_password_hash(expected_password_hash: str, password_candidate: SecretStr) -> None:
    """Check ``password_candidate`` against a PHC-format Argon2 hash.

    Blocking; call it through a HashingPool.

    Raises:
        InvalidCredentials: the password does not match.
        UnexpectedAuthError: the stored hash cannot be parsed.
    """
    try:
        password_hasher.verify(expected_password_hash, password_candidate.get_secret_value())
    except VerifyMismatchError as e:
        raise InvalidCredentials("Invalid password.") from e
    except InvalidHashError as e:
        raise UnexpectedAuthError("Failed to parse hash in PHC string format.") from e
    except VerificationError as e:
        raise UnexpectedAuthError("Password verification failed.") from e


def compute_password_hash(password: SecretStr) -> str:
    """Hash ``password`` with a fresh random salt. Blocking."""
    return password_hasher.hash(password.get_secret_value())


async def validate_credentials(
    credentials: Credentials,
    store: CredentialStore,
    pool: HashingPool,
) -> UUID:
    """Return the id of the user owning ``credentials``.

    The Argon2 verification always runs, against the dummy hash when the
    username is unknown, and only afterwards is the outcome decided. Unknown
    usernames and wrong passwords both raise InvalidCredentials.
    """
    user_id = None
    expected_password_hash = DUMMY_PASSWORD_HASH

    stored = await store.find_user_by_username(credentials.username)
    if stored is not None:
        user_id = stored.user_id
        expected_password_hash = stored.password_hash

    try:
        await pool.run(verify_password_hash, expected_password_hash, credentials.password)
    except RuntimeError as e:
        raise UnexpectedAuthError("Failed to run password verification.") from e

    if user_id is None:
        raise InvalidCredentials("Unknown username.")
    return user_id


async def change_password(
    user_id: UUID,
    password: SecretStr,
    store: CredentialStore,
    pool: HashingPool,
) -> None:
    try:
        password_hash = await pool.run(compute_password_hash, password)
    except RuntimeError as e:
        raise UnexpectedAuthError("Failed to hash password.") from e
    await store.update_password(user_id, password_hash)
    logger.info(f"Password changed for user {user_id}")
