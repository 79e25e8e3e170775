"""
Account Module

Accounts hold a balance. The balance only ever changes through credit()
and debit(), both of which either apply completely or raise without
touching the account.
"""

from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Any, Dict
import uuid

from .amount import Amount
from .config import OverdraftPolicy
from .errors import DomainInvariantViolation, InsufficientFunds
from .storage import StorageRecord


def _require_non_negative(amount: Amount, operation: str, account_id: str) -> None:
    if not isinstance(amount, Amount):
        raise TypeError(f"Expected Amount, got {type(amount).__name__}")
    if amount.is_negative():
        raise DomainInvariantViolation(
            f"Cannot {operation} negative amount {amount}",
            {"account_id": account_id, "amount": amount}
        )


@dataclass
class Account(StorageRecord):
    """Bank account identified by a stable id"""
    name: str
    balance: Amount = field(default_factory=Amount.zero)

    @classmethod
    def open(cls, name: str) -> 'Account':
        """Create a new account with zero balance and a fresh id"""
        now = datetime.now(timezone.utc)
        return cls(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            name=name
        )

    def credit(self, amount: Amount) -> None:
        """Increase the balance by a non-negative amount"""
        _require_non_negative(amount, "credit", self.id)
        self.balance = self.balance + amount
        self.updated_at = datetime.now(timezone.utc)

    def debit(self, amount: Amount, policy: OverdraftPolicy = OverdraftPolicy.REJECT) -> None:
        """
        Decrease the balance by a non-negative amount

        Raises:
            InsufficientFunds: If policy is REJECT and the balance would
                become negative
        """
        _require_non_negative(amount, "debit", self.id)
        new_balance = self.balance - amount
        if policy == OverdraftPolicy.REJECT and new_balance.is_negative():
            raise InsufficientFunds(
                f"Insufficient funds: balance {self.balance}, requested {amount}",
                {"account_id": self.id, "balance": self.balance, "amount": amount}
            )
        self.balance = new_balance
        self.updated_at = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['balance'] = self.balance.to_string()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Account':
        data = dict(data)
        data['balance'] = Amount.from_decimal_string(data['balance'])
        return super().from_dict(data)
