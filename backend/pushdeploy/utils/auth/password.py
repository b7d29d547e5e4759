"""
Password hashing

bcrypt with a per-password salt. Hashing and checking are CPU bound and run
in a worker thread.
"""

import asyncio
import secrets
import string

import bcrypt

from pushdeploy.config.settings import GitConfig

# Checked when there is no stored hash so the miss costs the same as a hit
_DUMMY_HASH = bcrypt.hashpw(b"pushdeploy-dummy-password", bcrypt.gensalt(rounds=GitConfig.BCRYPT_ROUNDS))

PASSWORD_ALPHABET = string.ascii_letters + string.digits


def generate_password(length: int = None) -> str:
    length = length or GitConfig.PASSWORD_LENGTH
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def _hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=GitConfig.BCRYPT_ROUNDS)).decode("ascii")


def _check(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("ascii"))
    except ValueError:
        # Malformed stored hash
        return False


async def hash_password(password: str) -> str:
    return await asyncio.to_thread(_hash, password)


async def verify_password(password: str, password_hash: str = None) -> bool:
    """
    Constant-time check of ``password`` against ``password_hash``

    With no hash the dummy hash is checked and False is returned.
    """
    if not password_hash:
        await asyncio.to_thread(_check, password, _DUMMY_HASH.decode("ascii"))
        return False
    return await asyncio.to_thread(_check, password, password_hash)
