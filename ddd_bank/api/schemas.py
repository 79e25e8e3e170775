"""
Pydantic schemas for API requests and responses
"""

from datetime import date
from typing import Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..access import AccountAccess
from ..accounts import Account
from ..amount import Amount
from ..clients import Client
from ..errors import InvalidBirthDate


class ApiModel(BaseModel):
    """Wire models use camelCase field names"""
    model_config = ConfigDict(populate_by_name=True)


class AmountCommand(ApiModel):
    """Base for commands carrying an amount; numbers travel in their string form"""
    amount: str = Field(..., description="Decimal amount as string")

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_text(cls, value):
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            raise ValueError("amount must be a decimal string or number")
        return value if isinstance(value, str) else str(value)

    def to_amount(self) -> Amount:
        return Amount.from_decimal_string(self.amount)


# Client schemas
class ClientResource(ApiModel):
    username: str
    birth_date: str = Field(..., alias="birthDate", description="ISO date YYYY-MM-DD")

    @classmethod
    def from_client(cls, client: Client) -> 'ClientResource':
        return cls(username=client.username, birth_date=client.birth_date.isoformat())


class CreateClientRequest(ApiModel):
    username: str
    birth_date: str = Field(..., alias="birthDate", description="ISO date YYYY-MM-DD")
    id: Optional[Union[int, str]] = Field(None, description="Must be absent; ids are assigned by the bank")

    def parsed_birth_date(self) -> date:
        try:
            return date.fromisoformat(self.birth_date)
        except ValueError:
            raise InvalidBirthDate(
                f"Birth date {self.birth_date!r} is not an ISO date YYYY-MM-DD",
                {"username": self.username}
            )


# Account schemas
class AccountResource(ApiModel):
    account_no: str = Field(..., alias="accountNo")
    name: str
    balance: str = Field(..., description="Decimal amount as string")

    @classmethod
    def from_account(cls, account: Account) -> 'AccountResource':
        return cls(account_no=account.id, name=account.name, balance=account.balance.to_string())


class AccountAccessResource(ApiModel):
    client_username: str = Field(..., alias="clientUsername")
    role: str
    is_owner: bool = Field(..., alias="isOwner")
    account: AccountResource

    @classmethod
    def from_access(cls, access: AccountAccess, account: Account) -> 'AccountAccessResource':
        return cls(
            client_username=access.client_username,
            role=access.role.value,
            is_owner=access.is_owner,
            account=AccountResource.from_account(account)
        )


# Command schemas
class DepositCommand(AmountCommand):
    account_id: str = Field(..., alias="accountId")


class TransferCommand(AmountCommand):
    source_account_id: str = Field(..., alias="sourceAccountId")
    destination_account_id: str = Field(..., alias="destinationAccountId")


class AddAccountManagerCommand(ApiModel):
    account_id: str = Field(..., alias="accountId")
    username: str
