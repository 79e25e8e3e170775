"""
Bank Service Module

Client lifecycle (create, find, delete) and the cross-account queries a
banker needs. The service works on an injected BankRepository; policies
come from BankConfig unless passed explicitly.
"""

import random
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from typing import Iterator, List, Optional, Sequence

from .access import AccessRole
from .accounts import Account
from .amount import Amount
from .clients import Client
from .config import BankConfig, ClientDeletionPolicy, OverdraftPolicy, get_config
from .errors import (
    BankError, DomainInvariantViolation, DuplicateUsername, InvalidBirthDate, NotFound
)
from .logging_config import get_logger, log_action
from .repository import BankRepository
from .storage import create_storage
from .unit_of_work import UnitOfWork


class BankService:
    """
    Client lifecycle and query facade over the ledger repository
    """

    def __init__(
        self,
        repository: BankRepository,
        overdraft_policy: Optional[OverdraftPolicy] = None,
        deletion_policy: Optional[ClientDeletionPolicy] = None,
        max_client_age_years: Optional[int] = None,
        today=date.today
    ):
        config = get_config()
        self.repository = repository
        self.overdraft_policy = overdraft_policy or config.overdraft_policy
        self.deletion_policy = deletion_policy or config.client_deletion_policy
        self.max_client_age_years = max_client_age_years or config.max_client_age_years
        self._today = today
        self.logger = get_logger("ddd_bank.bank")

    @classmethod
    def from_config(cls, config: Optional[BankConfig] = None) -> 'BankService':
        """Build a service with the storage backend named by the configuration"""
        config = config or get_config()
        repository = BankRepository(create_storage(config.database_url))
        return cls(
            repository,
            overdraft_policy=config.overdraft_policy,
            deletion_policy=config.client_deletion_policy,
            max_client_age_years=config.max_client_age_years
        )

    @contextmanager
    def transaction(self) -> Iterator[UnitOfWork]:
        """
        Group several operations into one unit of work

        Everything done inside the block commits together, or not at all
        if the block raises.
        """
        with self.repository.unit_of_work() as uow:
            yield uow

    def _attach(self, client: Optional[Client]) -> Optional[Client]:
        return client.attach(self) if client is not None else None

    def _validate_birth_date(self, username: str, birth_date: date) -> None:
        today = self._today()
        # datetime is a date subclass but does not compare with one
        if isinstance(birth_date, datetime) or not isinstance(birth_date, date):
            raise InvalidBirthDate(f"Birth date must be a date, got {birth_date!r}", {"username": username})
        if birth_date > today:
            raise InvalidBirthDate(
                f"Birth date {birth_date.isoformat()} lies in the future",
                {"username": username, "birth_date": birth_date.isoformat()}
            )
        oldest = date(today.year - self.max_client_age_years, 1, 1)
        if birth_date < oldest:
            raise InvalidBirthDate(
                f"Birth date {birth_date.isoformat()} is more than {self.max_client_age_years} years ago",
                {"username": username, "birth_date": birth_date.isoformat()}
            )

    # Lifecycle

    def create_client(self, username: str, birth_date: date) -> Client:
        """
        Create a new client

        Raises:
            DuplicateUsername: If the username is taken
            InvalidBirthDate: If the birth date is in the future or implausibly old
            DomainInvariantViolation: If the username is blank
        """
        username = (username or "").strip()
        try:
            if not username:
                raise DomainInvariantViolation("Username must not be blank")
            self._validate_birth_date(username, birth_date)
            with self.repository.unit_of_work():
                self.repository.lock_clients(username)
                if self.repository.client_exists(username):
                    raise DuplicateUsername(f"Client {username} already exists", {"username": username})
                client = Client.register(username, birth_date)
                self.repository.save_client(client)
        except BankError as e:
            log_action(
                self.logger, "warning", f"create_client rejected: {e.kind}",
                action="create_client", extra=e.to_dict()
            )
            raise

        log_action(
            self.logger, "info", f"Client created: {username}",
            action="create_client", resource=f"client:{username}"
        )
        return client.attach(self)

    def find_client(self, username: str) -> Optional[Client]:
        """Look up a client by username; None if absent"""
        return self._attach(self.repository.load_client(username))

    def delete_client(self, client: Client) -> None:
        """
        Delete a client with all its access records and the accounts it owns

        Raises:
            NotFound: If the client does not exist
            DomainInvariantViolation: If the deletion policy rejects deleting
                an owned account with a nonzero balance
        """
        username = client.username
        repository = self.repository
        try:
            with repository.unit_of_work():
                repository.lock_clients(username)
                if not repository.client_exists(username):
                    raise NotFound(f"Client {username} not found", {"username": username})

                accesses = repository.accesses_of_client(username)
                repository.lock_accounts(*(access.account_id for access in accesses))

                owned_accounts: List[Account] = []
                for access in repository.accesses_of_client(username):
                    if access.is_owner:
                        account = repository.load_account(access.account_id)
                        if account is not None:
                            owned_accounts.append(account)
                    else:
                        repository.delete_access(access)

                for account in owned_accounts:
                    if (self.deletion_policy == ClientDeletionPolicy.REJECT_NONZERO_BALANCE
                            and not account.balance.is_zero()):
                        raise DomainInvariantViolation(
                            f"Client {username} owns account {account.id} with balance {account.balance}",
                            {"username": username, "account_id": account.id, "balance": account.balance}
                        )
                    for access in repository.accesses_of_account(account.id):
                        repository.delete_access(access)
                    repository.delete_account(account.id)

                repository.delete_client(username)
        except BankError as e:
            log_action(
                self.logger, "warning", f"delete_client rejected: {e.kind}",
                action="delete_client", resource=f"client:{username}", extra=e.to_dict()
            )
            raise

        log_action(
            self.logger, "info", f"Client deleted: {username}",
            action="delete_client", resource=f"client:{username}",
            extra={"deleted_accounts": [account.id for account in owned_accounts]}
        )

    # Queries

    def find_all_clients(self) -> List[Client]:
        return [client.attach(self) for client in self.repository.load_all_clients()]

    def find_young_clients(self, from_birth_date: date) -> List[Client]:
        """Clients born on or after the given date"""
        return [client for client in self.find_all_clients() if client.birth_date >= from_birth_date]

    def find_rich_clients(self, min_balance: Amount) -> List[Client]:
        """Clients owning at least one account with a balance of min_balance or more"""
        rich_usernames = set()
        for access in self.repository.load_all_accesses():
            if access.role != AccessRole.OWNER or access.client_username in rich_usernames:
                continue
            account = self.repository.load_account(access.account_id)
            if account is not None and account.balance >= min_balance:
                rich_usernames.add(access.client_username)
        return [client for client in self.find_all_clients() if client.username in rich_usernames]

    def find_account(self, account_id: str) -> Optional[Account]:
        """Unrestricted account lookup, e.g. for a transfer destination"""
        return self.repository.load_account(account_id)

    # Demo and bootstrap helpers

    def random_client_birth_date(self, rng: Optional[random.Random] = None) -> date:
        """A birth date between 18 and 100 years before today"""
        rng = rng or random.Random()
        today = self._today()
        oldest = today - timedelta(days=365 * 100)
        youngest = today - timedelta(days=365 * 18)
        return oldest + timedelta(days=rng.randint(0, (youngest - oldest).days))

    def create_client_pair(self, number: int, birth_dates: Optional[Sequence[date]] = None) -> List[Client]:
        """
        Create clients hans<number> and jana<number> in one transaction

        When number is divisible by 3 the transaction fails after the
        first client, which must then not survive. Useful for populating
        a database and for checking the rollback.

        Returns:
            All clients after the pair was created
        """
        first_birth, second_birth = birth_dates or (
            self.random_client_birth_date(), self.random_client_birth_date()
        )
        with self.transaction():
            first = self.create_client(f"hans{number}", first_birth)
            if number % 3 == 0:
                raise DomainInvariantViolation(
                    f"Exception after creating {first}. Should have been rolled back.",
                    {"username": first.username}
                )
            self.create_client(f"jana{number}", second_birth)
        return self.find_all_clients()
