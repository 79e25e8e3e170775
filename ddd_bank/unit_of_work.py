"""
Unit of Work Module

Collects the writes of one logical operation, lets the operation read its
own uncommitted writes, and hands the whole batch to the storage backend
on commit. Nothing is visible to other operations before commit, and a
rollback simply discards the buffer.

Per-key locks serialize operations touching the same account or client.
Every operation takes client keys before account keys, and keys of one
kind in sorted order. Locks are held until the unit of work ends.
"""

import json
import threading
from typing import Any, Dict, List, Optional, Tuple

from .storage import StorageInterface, matches
from .logging_config import get_logger


class LockManager:
    """
    Hands out one re-entrant lock per key ("client:<name>", "account:<id>")

    A key's lock lives only while some thread holds or waits for it, so
    deleted clients and accounts leave nothing behind.
    """

    def __init__(self):
        # key -> [lock, number of threads holding or waiting]
        self._entries: Dict[str, List[Any]] = {}
        self._guard = threading.Lock()

    def acquire(self, key: str) -> None:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = [threading.RLock(), 0]
            entry[1] += 1
        entry[0].acquire()

    def release(self, key: str) -> None:
        with self._guard:
            entry = self._entries[key]
            entry[0].release()
            entry[1] -= 1
            if entry[1] == 0:
                del self._entries[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


# Client keys come before account keys everywhere
LOCK_RANKS = {"client": 0, "account": 1}


def lock_order(key: str) -> Tuple[int, str]:
    return LOCK_RANKS.get(key.partition(":")[0], len(LOCK_RANKS)), key


Savepoint = Dict[Tuple[str, str], Optional[Dict[str, Any]]]


class UnitOfWork:
    """
    Buffered, atomically committed set of writes

    Reads go through the buffer first, so an operation sees its own
    changes; everything else sees committed state only.
    """

    def __init__(self, storage: StorageInterface, locks: LockManager):
        self.storage = storage
        self._locks = locks
        self._held: List[str] = []
        # (table, record_id) -> data, or None for a pending delete
        self._writes: Dict[Tuple[str, str], Optional[Dict[str, Any]]] = {}
        self._finished = False
        self.logger = get_logger("ddd_bank.unit_of_work")

    # Locking

    def lock(self, *keys: str) -> None:
        """Acquire locks for keys not yet held, clients first"""
        for key in sorted(set(keys) - set(self._held), key=lock_order):
            self._locks.acquire(key)
            self._held.append(key)

    def _release_locks(self) -> None:
        while self._held:
            self._locks.release(self._held.pop())

    # Writes

    def save(self, table: str, record_id: str, data: Dict[str, Any]) -> None:
        # Copy so later mutation of the caller's dict cannot leak into the batch
        self._writes[(table, record_id)] = json.loads(json.dumps(data, default=str))

    def delete(self, table: str, record_id: str) -> None:
        self._writes[(table, record_id)] = None

    # Reads

    def load(self, table: str, record_id: str) -> Optional[Dict[str, Any]]:
        key = (table, record_id)
        if key in self._writes:
            data = self._writes[key]
            return None if data is None else json.loads(json.dumps(data))
        return self.storage.load(table, record_id)

    def exists(self, table: str, record_id: str) -> bool:
        return self.load(table, record_id) is not None

    def find(self, table: str, filters: Dict[str, Any]) -> List[Dict[str, Any]]:
        pending = {
            record_id: data
            for (write_table, record_id), data in self._writes.items()
            if write_table == table
        }
        results = [
            record for record in self.storage.find(table, filters)
            if record.get('id') not in pending
        ]
        for data in pending.values():
            if data is not None and matches(data, filters):
                results.append(json.loads(json.dumps(data)))
        return results

    def load_all(self, table: str) -> List[Dict[str, Any]]:
        return self.find(table, {})

    # Savepoints for nested units of work

    def savepoint(self) -> Savepoint:
        return dict(self._writes)

    def rollback_to(self, savepoint: Savepoint) -> None:
        self._writes = dict(savepoint)

    # Completion

    @property
    def pending_operations(self) -> List[Tuple[str, str, Optional[Dict[str, Any]]]]:
        return [(table, record_id, data) for (table, record_id), data in self._writes.items()]

    def commit(self) -> None:
        """Apply all buffered writes atomically, then release locks"""
        if self._finished:
            raise RuntimeError("Unit of work already finished")
        try:
            if self._writes:
                self.storage.apply_batch(self.pending_operations)
                self.logger.debug(f"Committed {len(self._writes)} write(s)")
        finally:
            self._writes = {}
            self._finished = True
            self._release_locks()

    def rollback(self) -> None:
        """Discard buffered writes and release locks"""
        if self._writes:
            self.logger.debug(f"Rolled back {len(self._writes)} write(s)")
        self._writes = {}
        self._finished = True
        self._release_locks()
