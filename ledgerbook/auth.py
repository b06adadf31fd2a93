"""
Allow-list Login

DESIGN DECISION: This is a UI gate, not a security boundary.
Accounts are a fixed list checked in-process; there is no hashing and
no session store. Anyone with the source can read the credentials.
"""

import hmac
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"


class Account(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str
    password: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


ACCOUNTS: tuple[Account, ...] = (
    Account(username="Amir", password="2731", role=Role.ADMIN),
    Account(username="Jack", password="2731", role=Role.USER),
)


def authenticate(
    username: str,
    password: str,
    accounts: tuple[Account, ...] = ACCOUNTS,
) -> Optional[Account]:
    """Return the matching account, or None."""
    for account in accounts:
        if account.username == username.strip() and hmac.compare_digest(
            account.password.encode(), password.encode()
        ):
            return account
    return None
