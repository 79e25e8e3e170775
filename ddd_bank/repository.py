"""
Repository Module

Maps Clients, Accounts and AccountAccess records onto a storage backend
and scopes every mutation to a unit of work. The repository is injected
into BankService, so tests run against InMemoryStorage and production
against SQLiteStorage without changing the domain code.
"""

import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional, Union

from .access import AccountAccess, access_id
from .accounts import Account
from .clients import Client
from .storage import StorageInterface
from .unit_of_work import LockManager, UnitOfWork


class BankRepository:
    """Persistence of the ledger aggregate with unit-of-work scoping"""

    clients_table = "clients"
    accounts_table = "accounts"
    accesses_table = "account_accesses"

    def __init__(self, storage: StorageInterface):
        self.storage = storage
        self._locks = LockManager()
        self._local = threading.local()

    # Unit of work

    @property
    def current_unit_of_work(self) -> Optional[UnitOfWork]:
        return getattr(self._local, 'unit_of_work', None)

    @contextmanager
    def unit_of_work(self) -> Iterator[UnitOfWork]:
        """
        Open a unit of work, or join the one already open on this thread

        A joined (nested) block gets a savepoint: if it raises, its own
        writes are discarded before the exception propagates. The
        outermost block commits on success and rolls back on any error.
        """
        current = self.current_unit_of_work
        if current is not None:
            savepoint = current.savepoint()
            try:
                yield current
            except BaseException:
                current.rollback_to(savepoint)
                raise
            return

        uow = UnitOfWork(self.storage, self._locks)
        self._local.unit_of_work = uow
        try:
            yield uow
        except BaseException:
            uow.rollback()
            raise
        else:
            uow.commit()
        finally:
            self._local.unit_of_work = None

    def _reader(self) -> Union[UnitOfWork, StorageInterface]:
        return self.current_unit_of_work or self.storage

    def _writer(self) -> UnitOfWork:
        uow = self.current_unit_of_work
        if uow is None:
            raise RuntimeError("Writes must happen inside a unit of work")
        return uow

    # Callers lock clients before accounts

    def lock_accounts(self, *account_ids: str) -> None:
        self._writer().lock(*(f"account:{account_id}" for account_id in account_ids))

    def lock_clients(self, *usernames: str) -> None:
        self._writer().lock(*(f"client:{username}" for username in usernames))

    # Clients

    def load_client(self, username: str) -> Optional[Client]:
        data = self._reader().load(self.clients_table, username)
        if data:
            return Client.from_dict(data)
        return None

    def client_exists(self, username: str) -> bool:
        return self._reader().exists(self.clients_table, username)

    def load_all_clients(self) -> List[Client]:
        return [Client.from_dict(data) for data in self._reader().load_all(self.clients_table)]

    def save_client(self, client: Client) -> None:
        self._writer().save(self.clients_table, client.id, client.to_dict())

    def delete_client(self, username: str) -> None:
        self._writer().delete(self.clients_table, username)

    # Accounts

    def load_account(self, account_id: str) -> Optional[Account]:
        data = self._reader().load(self.accounts_table, account_id)
        if data:
            return Account.from_dict(data)
        return None

    def save_account(self, account: Account) -> None:
        self._writer().save(self.accounts_table, account.id, account.to_dict())

    def delete_account(self, account_id: str) -> None:
        self._writer().delete(self.accounts_table, account_id)

    # Access relation

    def load_access(self, account_id: str, username: str) -> Optional[AccountAccess]:
        data = self._reader().load(self.accesses_table, access_id(account_id, username))
        if data:
            return AccountAccess.from_dict(data)
        return None

    def accesses_of_client(self, username: str) -> List[AccountAccess]:
        records = self._reader().find(self.accesses_table, {"client_username": username})
        return [AccountAccess.from_dict(data) for data in records]

    def accesses_of_account(self, account_id: str) -> List[AccountAccess]:
        records = self._reader().find(self.accesses_table, {"account_id": account_id})
        return [AccountAccess.from_dict(data) for data in records]

    def load_all_accesses(self) -> List[AccountAccess]:
        return [AccountAccess.from_dict(data) for data in self._reader().load_all(self.accesses_table)]

    def save_access(self, access: AccountAccess) -> None:
        self._writer().save(self.accesses_table, access.id, access.to_dict())

    def delete_access(self, access: AccountAccess) -> None:
        self._writer().delete(self.accesses_table, access.id)

    def close(self) -> None:
        self.storage.close()
