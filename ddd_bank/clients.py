"""
Client Module

The Client is the aggregate root of the ledger. It reaches its accounts
through the AccountAccess relation and offers the transactional
operations: opening accounts, deposits, transfers and delegating access.
Every operation re-checks the access relation and runs in one unit of
work, so it either commits completely or leaves no trace.
"""

from datetime import date, datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from .access import AccessRole, AccountAccess, grant_access, require_access
from .accounts import Account
from .amount import Amount
from .errors import BankError, DomainInvariantViolation, NotFound
from .logging_config import get_logger, log_action
from .storage import StorageRecord

if TYPE_CHECKING:
    from .bank import BankService


logger = get_logger("ddd_bank.clients")


def _require_positive(amount: Amount, **identifiers) -> None:
    if not isinstance(amount, Amount):
        raise TypeError(f"Expected Amount, got {type(amount).__name__}")
    if not amount.is_positive():
        raise DomainInvariantViolation(
            f"Amount must be positive, got {amount}",
            dict(identifiers, amount=amount)
        )


def _refresh(target: Account, committed: Account) -> None:
    """Copy the committed balance back onto the caller's account object"""
    if target is not committed:
        target.balance = committed.balance
        target.updated_at = committed.updated_at


@dataclass
class Client(StorageRecord):
    """
    Account holder, identified by its unique username (the record id)
    """
    birth_date: date

    # Set by BankService when the client is handed out; not persisted
    _bank: Optional['BankService'] = field(default=None, repr=False, compare=False)

    @classmethod
    def register(cls, username: str, birth_date: date) -> 'Client':
        now = datetime.now(timezone.utc)
        return cls(id=username, created_at=now, updated_at=now, birth_date=birth_date)

    @property
    def username(self) -> str:
        return self.id

    def attach(self, bank: 'BankService') -> 'Client':
        """Bind this client to the bank it acts in"""
        self._bank = bank
        return self

    def _require_bank(self) -> 'BankService':
        if self._bank is None:
            raise DomainInvariantViolation(
                f"Client {self.username} is not attached to a bank",
                {"username": self.username}
            )
        return self._bank

    def _load_account(self, account_id: str) -> Account:
        account = self._require_bank().repository.load_account(account_id)
        if account is None:
            raise NotFound(f"Account {account_id} not found", {"account_id": account_id})
        return account

    def _rejected(self, action: str, error: BankError) -> None:
        log_action(
            logger, "warning", f"{action} rejected: {error.kind}",
            user_id=self.username, action=action, extra=error.to_dict()
        )

    # Queries

    def accesses(self) -> List[AccountAccess]:
        """My accounts and my role on each, oldest grant first"""
        accesses = self._require_bank().repository.accesses_of_client(self.username)
        return sorted(accesses, key=lambda access: access.created_at)

    def find_account(self, account_id: str) -> Optional[Account]:
        """
        Find an account this client owns or manages

        An account without access looks exactly like a missing one.
        """
        repository = self._require_bank().repository
        if repository.load_access(account_id, self.username) is None:
            return None
        return repository.load_account(account_id)

    def accounts_report(self) -> str:
        """Plain-text summary of all accessible accounts and their balances"""
        repository = self._require_bank().repository
        lines = [f"Accounts of client {self.username}:"]
        total_owned = Amount.zero()
        for access in self.accesses():
            account = repository.load_account(access.account_id)
            if account is None:
                continue
            lines.append(
                f"  {access.role.value.upper():<7} {account.id}  {account.name}: {account.balance}"
            )
            if access.is_owner:
                total_owned = total_owned + account.balance
        lines.append(f"Total balance of owned accounts: {total_owned}")
        return "\n".join(lines) + "\n"

    # Transactional operations

    def create_account(self, name: str) -> AccountAccess:
        """
        Open a new zero-balance account owned by this client

        Returns:
            The OWNER AccountAccess created with the account
        """
        bank = self._require_bank()
        repository = bank.repository
        name = (name or "").strip()
        try:
            if not name:
                raise DomainInvariantViolation("Account name must not be blank", {"username": self.username})
            with repository.unit_of_work():
                repository.lock_clients(self.username)
                if not repository.client_exists(self.username):
                    raise NotFound(f"Client {self.username} not found", {"username": self.username})
                account = Account.open(name)
                repository.lock_accounts(account.id)
                repository.save_account(account)
                access = AccountAccess.grant(account.id, self.username, AccessRole.OWNER)
                repository.save_access(access)
        except BankError as e:
            self._rejected("create_account", e)
            raise

        log_action(
            logger, "info", f"Account created: {name}",
            user_id=self.username, action="create_account", resource=f"account:{account.id}"
        )
        return access

    def deposit(self, account: Account, amount: Amount) -> None:
        """
        Credit an account this client owns or manages

        Raises:
            NotAuthorized: If the client has no access to the account
            DomainInvariantViolation: If the amount is not positive
        """
        repository = self._require_bank().repository
        try:
            _require_positive(amount, account_id=account.id)
            with repository.unit_of_work():
                repository.lock_accounts(account.id)
                require_access(repository, account.id, self.username)
                current = self._load_account(account.id)
                current.credit(amount)
                repository.save_account(current)
        except BankError as e:
            self._rejected("deposit", e)
            raise

        _refresh(account, current)
        log_action(
            logger, "info", f"Deposit of {amount}",
            user_id=self.username, action="deposit", resource=f"account:{account.id}",
            extra={"amount": amount.to_string(), "balance": current.balance.to_string()}
        )

    def transfer(self, source: Account, destination: Account, amount: Amount) -> None:
        """
        Move money from an account this client owns or manages to any account

        Debit and credit commit together; on any failure neither balance
        changes.

        Raises:
            NotAuthorized: If the client has no access to the source account
            InsufficientFunds: If the source cannot cover the amount
            NotFound: If either account does not exist
            DomainInvariantViolation: If amount is not positive or source
                and destination are the same account
        """
        bank = self._require_bank()
        repository = bank.repository
        try:
            _require_positive(amount, source_account_id=source.id, destination_account_id=destination.id)
            if source.id == destination.id:
                raise DomainInvariantViolation(
                    "Source and destination account must differ",
                    {"account_id": source.id}
                )
            with repository.unit_of_work():
                repository.lock_accounts(source.id, destination.id)
                require_access(repository, source.id, self.username)
                current_source = self._load_account(source.id)
                current_destination = self._load_account(destination.id)
                current_source.debit(amount, bank.overdraft_policy)
                current_destination.credit(amount)
                repository.save_account(current_source)
                repository.save_account(current_destination)
        except BankError as e:
            self._rejected("transfer", e)
            raise

        _refresh(source, current_source)
        _refresh(destination, current_destination)
        log_action(
            logger, "info", f"Transfer of {amount}",
            user_id=self.username, action="transfer", resource=f"account:{source.id}",
            extra={"amount": amount.to_string(), "destination": destination.id}
        )

    def add_account_manager(self, account: Account, manager: 'Client') -> AccountAccess:
        """
        Let another client manage an account this client owns

        Raises:
            NotAuthorized: If this client is not the account's OWNER
            DuplicateAccess: If the manager already has a role on the account
            NotFound: If the manager client does not exist
        """
        repository = self._require_bank().repository
        try:
            with repository.unit_of_work():
                repository.lock_clients(manager.username)
                repository.lock_accounts(account.id)
                if not repository.client_exists(manager.username):
                    raise NotFound(f"Client {manager.username} not found", {"username": manager.username})
                access = grant_access(
                    repository, account.id, self.username, manager.username, AccessRole.MANAGER
                )
        except BankError as e:
            self._rejected("add_account_manager", e)
            raise

        log_action(
            logger, "info", f"Manager {manager.username} added",
            user_id=self.username, action="add_account_manager", resource=f"account:{account.id}"
        )
        return access

    # Persistence

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.pop('_bank', None)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Client':
        data = dict(data)
        data['birth_date'] = date.fromisoformat(data['birth_date'])
        return super().from_dict(data)

    def __str__(self) -> str:
        return f"Client({self.username}, born {self.birth_date.isoformat()})"
