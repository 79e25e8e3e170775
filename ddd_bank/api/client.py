"""
Client endpoints: the authenticated client acting on its own accounts
"""

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import PlainTextResponse

from .auth import get_bank, get_current_client
from .schemas import (
    AccountAccessResource, AccountResource, AddAccountManagerCommand,
    DepositCommand, TransferCommand
)
from ..accounts import Account
from ..bank import BankService
from ..clients import Client
from ..errors import NotFound


router = APIRouter()


def _own_account(client: Client, account_id: str) -> Account:
    account = client.find_account(account_id)
    if account is None:
        raise NotFound(
            f"Client {client.username} has no account {account_id}",
            {"username": client.username, "account_id": account_id}
        )
    return account


@router.post("/account", status_code=status.HTTP_201_CREATED, response_model=AccountAccessResource)
async def create_account(request: Request, client: Client = Depends(get_current_client)):
    """Create a new account for the authenticated client; the body is the plain-text account name"""
    name = (await request.body()).decode("utf-8")
    access = client.create_account(name)
    account = _own_account(client, access.account_id)
    return AccountAccessResource.from_access(access, account)


@router.get("/account", response_class=PlainTextResponse)
async def accounts_report(client: Client = Depends(get_current_client)):
    """Report of all accounts the client owns or manages"""
    return client.accounts_report()


@router.post("/deposit", status_code=status.HTTP_204_NO_CONTENT)
async def deposit(command: DepositCommand, client: Client = Depends(get_current_client)):
    """Deposit money into an account the client owns or manages"""
    amount = command.to_amount()
    account = _own_account(client, command.account_id)
    client.deposit(account, amount)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/transfer", response_model=AccountResource)
async def transfer(
    command: TransferCommand,
    client: Client = Depends(get_current_client),
    bank: BankService = Depends(get_bank)
):
    """Transfer money from an account the client owns or manages to any account"""
    amount = command.to_amount()
    source = _own_account(client, command.source_account_id)
    destination = bank.find_account(command.destination_account_id)
    if destination is None:
        raise NotFound(
            f"Account {command.destination_account_id} not found",
            {"account_id": command.destination_account_id}
        )
    client.transfer(source, destination, amount)
    return AccountResource.from_account(source)


@router.post("/manager", status_code=status.HTTP_201_CREATED, response_model=AccountAccessResource)
async def add_account_manager(
    command: AddAccountManagerCommand,
    client: Client = Depends(get_current_client),
    bank: BankService = Depends(get_bank)
):
    """Let another client manage an account the authenticated client owns"""
    account = _own_account(client, command.account_id)
    manager = bank.find_client(command.username)
    if manager is None:
        raise NotFound(f"Client {command.username} not found", {"username": command.username})
    access = client.add_account_manager(account, manager)
    return AccountAccessResource.from_access(access, account)
