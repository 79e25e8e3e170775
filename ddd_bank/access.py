"""
Account Access Module

The relation between a Client and an Account. Authorization is a lookup
on this relation: a client may act on an account only if it holds a role
on it, and only the OWNER may grant further access.
"""

from datetime import datetime, timezone
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, TYPE_CHECKING

from .errors import DuplicateAccess, NotAuthorized
from .storage import StorageRecord

if TYPE_CHECKING:
    from .repository import BankRepository


class AccessRole(Enum):
    """Role of a client on an account"""
    OWNER = "owner"      # Exactly one per account, created with it
    MANAGER = "manager"  # Delegated by the owner, cannot delegate further


ANY_ROLE = (AccessRole.OWNER, AccessRole.MANAGER)


def access_id(account_id: str, username: str) -> str:
    """Record id of the access of a client on an account"""
    return f"{account_id}:{username}"


@dataclass
class AccountAccess(StorageRecord):
    """Grants a client a role on an account"""
    client_username: str
    account_id: str
    role: AccessRole

    @classmethod
    def grant(cls, account_id: str, username: str, role: AccessRole) -> 'AccountAccess':
        now = datetime.now(timezone.utc)
        return cls(
            id=access_id(account_id, username),
            created_at=now,
            updated_at=now,
            client_username=username,
            account_id=account_id,
            role=role
        )

    @property
    def granted_at(self) -> datetime:
        return self.created_at

    @property
    def is_owner(self) -> bool:
        return self.role == AccessRole.OWNER

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AccountAccess':
        data = dict(data)
        data['role'] = AccessRole(data['role'])
        return super().from_dict(data)


def require_access(
    repository: 'BankRepository',
    account_id: str,
    username: str,
    roles: Iterable[AccessRole] = ANY_ROLE
) -> AccountAccess:
    """
    Check that a client holds one of the given roles on an account

    Returns:
        The matching AccountAccess

    Raises:
        NotAuthorized: If the client has no such access
    """
    roles = tuple(roles)
    access = repository.load_access(account_id, username)
    if access is None or access.role not in roles:
        raise NotAuthorized(
            f"Client {username} is not {' or '.join(r.value for r in roles)} of account {account_id}",
            {"account_id": account_id, "username": username}
        )
    return access


def grant_access(
    repository: 'BankRepository',
    account_id: str,
    actor_username: str,
    client_username: str,
    role: AccessRole
) -> AccountAccess:
    """
    Grant a client a role on an account on behalf of an actor

    Must run inside a unit of work that holds the account lock.

    Raises:
        NotAuthorized: If the actor is not the account's OWNER
        DuplicateAccess: If the client already holds a role on the account
    """
    require_access(repository, account_id, actor_username, roles=(AccessRole.OWNER,))

    existing: Optional[AccountAccess] = repository.load_access(account_id, client_username)
    if existing is not None:
        raise DuplicateAccess(
            f"Client {client_username} already is {existing.role.value} of account {account_id}",
            {"account_id": account_id, "username": client_username}
        )

    access = AccountAccess.grant(account_id, client_username, role)
    repository.save_access(access)
    return access
