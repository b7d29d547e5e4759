"""
Git Credential Schemas
"""

from typing import Optional
from pydantic import BaseModel


class GitCredentialsResponse(BaseModel):
    """The plaintext password is only populated right after issue or rotation"""
    git_username: str
    git_password: Optional[str] = None
    has_password: bool = True
    message: str = ""
