"""
Banker endpoints: client lifecycle and client queries
"""

import time
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Response, status

from .auth import get_bank, require_banker
from .schemas import ClientResource, CreateClientRequest
from ..amount import Amount
from ..bank import BankService
from ..errors import DomainInvariantViolation, InvalidBirthDate, NotFound


router = APIRouter(dependencies=[Depends(require_banker)])


@router.post("/pair", response_model=List[ClientResource])
async def create_client_pair(bank: BankService = Depends(get_bank)):
    """Create clients hans<n> and jana<n>; fails and rolls back for every third n"""
    number = int(time.time() * 1000) % 100
    clients = bank.create_client_pair(number)
    return [ClientResource.from_client(client) for client in clients]


@router.post("/client", status_code=status.HTTP_201_CREATED, response_model=ClientResource)
async def create_client(
    request: CreateClientRequest,
    bank: BankService = Depends(get_bank)
):
    """Create a new client"""
    if request.id is not None:
        raise DomainInvariantViolation(
            f"Client {request.username} must not be created with a preset id {request.id}",
            {"username": request.username, "id": request.id}
        )
    client = bank.create_client(request.username, request.parsed_birth_date())
    return ClientResource.from_client(client)


@router.delete("/client/{username}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(username: str, bank: BankService = Depends(get_bank)):
    """Delete a client together with its accounts"""
    client = bank.find_client(username)
    if client is None:
        raise NotFound(f"Client {username} not found", {"username": username})
    bank.delete_client(client)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/client", response_model=List[ClientResource])
async def find_clients(
    fromBirth: Optional[str] = None,
    minBalance: Optional[str] = None,
    bank: BankService = Depends(get_bank)
):
    """
    Find clients

    fromBirth: only clients born on or after this ISO date
    minBalance: only clients with an account holding at least this amount
    Without parameters all clients are returned.
    """
    if fromBirth is not None and minBalance is not None:
        raise DomainInvariantViolation(
            "Must not provide both parameters: fromBirth and minBalance",
            {"fromBirth": fromBirth, "minBalance": minBalance}
        )
    if fromBirth is not None:
        try:
            from_birth_date = date.fromisoformat(fromBirth)
        except ValueError:
            raise InvalidBirthDate(f"fromBirth {fromBirth!r} is not an ISO date YYYY-MM-DD")
        clients = bank.find_young_clients(from_birth_date)
    elif minBalance is not None:
        clients = bank.find_rich_clients(Amount.from_decimal_string(minBalance))
    else:
        clients = bank.find_all_clients()
    return [ClientResource.from_client(client) for client in clients]
