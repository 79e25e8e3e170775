"""
Authentication and authorization dependencies
"""

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from ..bank import BankService
from ..clients import Client
from ..config import get_config
from ..errors import NotFound


# Global bank service instance, built from configuration on first use
bank_service: Optional[BankService] = None

security = HTTPBasic()


# Dependency to get the bank service
def get_bank() -> BankService:
    global bank_service
    if bank_service is None:
        bank_service = BankService.from_config()
    return bank_service


def get_remote_user(credentials: HTTPBasicCredentials = Depends(security)) -> str:
    """Authenticate the principal against the configured Basic auth users"""
    users = get_config().basic_auth_users
    expected = users.get(credentials.username)
    if expected is None or not secrets.compare_digest(
        credentials.password.encode("utf-8"), expected.encode("utf-8")
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


def get_current_client(
    username: str = Depends(get_remote_user),
    bank: BankService = Depends(get_bank)
) -> Client:
    """The Client acting as the authenticated principal"""
    client = bank.find_client(username)
    if client is None:
        raise NotFound(f"No client for authenticated user {username}", {"username": username})
    return client


def require_banker(username: str = Depends(get_remote_user)) -> str:
    """Restrict /bank routes to the configured bankers, if any are configured"""
    bankers = get_config().banker_usernames
    if bankers and username not in bankers:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"User {username} is not a banker"
        )
    return username
