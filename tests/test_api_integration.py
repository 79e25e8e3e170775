"""
Integration tests for the DDD Bank API
Tests end-to-end workflows using FastAPI TestClient
"""

import pytest
from fastapi.testclient import TestClient

from ddd_bank import config as config_module
from ddd_bank.api import create_app
from ddd_bank.api.auth import get_bank
from ddd_bank.bank import BankService
from ddd_bank.config import BankConfig, ClientDeletionPolicy, OverdraftPolicy
from ddd_bank.repository import BankRepository
from ddd_bank.storage import InMemoryStorage


BANKER = ("bank", "bank-secret")
HANS = ("hans", "hans-secret")
JANA = ("jana", "jana-secret")
PAUL = ("paul", "paul-secret")


@pytest.fixture
def bank():
    return BankService(
        BankRepository(InMemoryStorage()),
        overdraft_policy=OverdraftPolicy.REJECT,
        deletion_policy=ClientDeletionPolicy.REJECT_NONZERO_BALANCE,
        max_client_age_years=150
    )


@pytest.fixture
def client(bank, monkeypatch):
    """Create a test client for the API with an in-memory bank"""
    test_config = BankConfig(
        _env_file=None,
        database_url="memory://",
        basic_auth_users=dict([BANKER, HANS, JANA, PAUL]),
        banker_usernames=[BANKER[0]]
    )
    monkeypatch.setattr(config_module, "config", test_config)

    app = create_app()
    app.dependency_overrides[get_bank] = lambda: bank
    return TestClient(app)


def create_client(client, username, birth_date="1990-01-01"):
    r = client.post("/bank/client", json={"username": username, "birthDate": birth_date}, auth=BANKER)
    assert r.status_code == 201
    return r.json()


def create_account(client, auth, name="Giro"):
    r = client.post("/client/account", content=name, headers={"Content-Type": "text/plain"}, auth=auth)
    assert r.status_code == 201
    return r.json()["account"]["accountNo"]


class TestHealthEndpoints:
    """Test basic health and root endpoints"""

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "healthy"

    def test_root(self, client):
        r = client.get("/")
        assert r.status_code == 200
        assert "text/html" in r.headers["content-type"]
        assert "/docs" in r.text


class TestAuthentication:
    """Test HTTP Basic authentication and banker restriction"""

    def test_missing_credentials(self, client):
        assert client.get("/client/account").status_code == 401

    def test_wrong_password(self, client):
        r = client.get("/client/account", auth=("hans", "wrong"))
        assert r.status_code == 401

    def test_bank_routes_require_banker(self, client):
        r = client.get("/bank/client", auth=HANS)
        assert r.status_code == 403

    def test_user_without_client(self, client):
        r = client.get("/client/account", auth=HANS)
        assert r.status_code == 404
        assert r.json()["kind"] == "NotFound"


class TestBankFlow:
    """Banker endpoints"""

    def test_create_client(self, client):
        data = create_client(client, "hans", "1990-05-17")
        assert data == {"username": "hans", "birthDate": "1990-05-17"}

    def test_create_client_with_id_rejected(self, client):
        r = client.post("/bank/client", json={"username": "hans", "birthDate": "1990-05-17", "id": 7}, auth=BANKER)
        assert r.status_code == 400
        assert r.json()["kind"] == "DomainInvariantViolation"

    def test_duplicate_client(self, client):
        create_client(client, "hans")
        r = client.post("/bank/client", json={"username": "hans", "birthDate": "1991-01-01"}, auth=BANKER)
        assert r.status_code == 409
        body = r.json()
        assert body["kind"] == "DuplicateUsername"
        assert body["identifiers"] == {"username": "hans"}

    def test_invalid_birth_date(self, client):
        r = client.post("/bank/client", json={"username": "hans", "birthDate": "17.05.1990"}, auth=BANKER)
        assert r.status_code == 400
        assert r.json()["kind"] == "InvalidBirthDate"

        r = client.post("/bank/client", json={"username": "hans", "birthDate": "2999-01-01"}, auth=BANKER)
        assert r.status_code == 400

    def test_delete_client(self, client):
        create_client(client, "hans")
        assert client.delete("/bank/client/hans", auth=BANKER).status_code == 204
        assert client.delete("/bank/client/hans", auth=BANKER).status_code == 404

    def test_find_clients(self, client):
        create_client(client, "hans", "1990-05-17")
        create_client(client, "jana", "1960-01-01")
        account_no = create_account(client, JANA)
        client.post("/client/deposit", json={"accountId": account_no, "amount": "1000"}, auth=JANA)

        r = client.get("/bank/client", auth=BANKER)
        assert {c["username"] for c in r.json()} == {"hans", "jana"}

        r = client.get("/bank/client", params={"fromBirth": "1980-01-01"}, auth=BANKER)
        assert [c["username"] for c in r.json()] == ["hans"]

        r = client.get("/bank/client", params={"minBalance": "999.99"}, auth=BANKER)
        assert [c["username"] for c in r.json()] == ["jana"]

    def test_find_clients_with_both_filters(self, client):
        r = client.get("/bank/client", params={"fromBirth": "1980-01-01", "minBalance": "1"}, auth=BANKER)
        assert r.status_code == 400
        assert r.json()["kind"] == "DomainInvariantViolation"

    def test_find_clients_bad_amount(self, client):
        r = client.get("/bank/client", params={"minBalance": "lots"}, auth=BANKER)
        assert r.status_code == 400
        assert r.json()["kind"] == "InvalidAmountFormat"

    def test_create_pair(self, client, bank):
        r = client.post("/bank/pair", auth=BANKER)
        if r.status_code == 200:
            usernames = {c["username"] for c in r.json()}
            assert any(name.startswith("hans") for name in usernames)
            assert any(name.startswith("jana") for name in usernames)
        else:
            # Every third pair fails and must leave nothing behind
            assert r.status_code == 400
            assert bank.find_all_clients() == []


class TestClientFlow:
    """End-to-end client workflows"""

    def setup_clients(self, client):
        for username, _ in (HANS, JANA, PAUL):
            create_client(client, username)

    def test_create_account(self, client):
        self.setup_clients(client)
        r = client.post("/client/account", content="Giro", headers={"Content-Type": "text/plain"}, auth=HANS)

        assert r.status_code == 201
        body = r.json()
        assert body["clientUsername"] == "hans"
        assert body["isOwner"] is True
        assert body["role"] == "owner"
        assert body["account"]["name"] == "Giro"
        assert body["account"]["balance"] == "0.00"

    def test_deposit_and_report(self, client):
        self.setup_clients(client)
        account_no = create_account(client, HANS)

        r = client.post("/client/deposit", json={"accountId": account_no, "amount": "100.50"}, auth=HANS)
        assert r.status_code == 204
        r = client.post("/client/deposit", json={"accountId": account_no, "amount": 0.5}, auth=HANS)
        assert r.status_code == 204

        r = client.get("/client/account", auth=HANS)
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/plain")
        assert "Giro: 101.00" in r.text
        assert "Total balance of owned accounts: 101.00" in r.text

    def test_deposit_errors(self, client):
        self.setup_clients(client)
        account_no = create_account(client, HANS)

        r = client.post("/client/deposit", json={"accountId": account_no, "amount": "1.001"}, auth=HANS)
        assert r.status_code == 400
        assert r.json()["kind"] == "InvalidAmountFormat"

        r = client.post("/client/deposit", json={"accountId": account_no, "amount": "10"}, auth=JANA)
        assert r.status_code == 404

        r = client.post("/client/deposit", json={"accountId": account_no, "amount": "-10"}, auth=HANS)
        assert r.status_code == 400
        assert r.json()["kind"] == "DomainInvariantViolation"

    def test_transfer(self, client, bank):
        self.setup_clients(client)
        source = create_account(client, HANS)
        destination = create_account(client, JANA, "Savings")
        client.post("/client/deposit", json={"accountId": source, "amount": "100"}, auth=HANS)

        r = client.post("/client/transfer", json={
            "sourceAccountId": source,
            "destinationAccountId": destination,
            "amount": "40"
        }, auth=HANS)

        assert r.status_code == 200
        assert r.json() == {"accountNo": source, "name": "Giro", "balance": "60.00"}
        assert bank.find_account(destination).balance.to_string() == "40.00"

    def test_transfer_insufficient_funds(self, client, bank):
        self.setup_clients(client)
        source = create_account(client, HANS)
        destination = create_account(client, JANA, "Savings")
        client.post("/client/deposit", json={"accountId": source, "amount": "10"}, auth=HANS)

        r = client.post("/client/transfer", json={
            "sourceAccountId": source,
            "destinationAccountId": destination,
            "amount": "10.01"
        }, auth=HANS)

        assert r.status_code == 422
        assert r.json()["kind"] == "InsufficientFunds"
        assert bank.find_account(source).balance.to_string() == "10.00"
        assert bank.find_account(destination).balance.is_zero()

    def test_transfer_to_unknown_account(self, client):
        self.setup_clients(client)
        source = create_account(client, HANS)
        r = client.post("/client/transfer", json={
            "sourceAccountId": source,
            "destinationAccountId": "nope",
            "amount": "1"
        }, auth=HANS)
        assert r.status_code == 404

    def test_manager_flow(self, client):
        """Owner delegates, manager deposits, manager cannot delegate further"""
        self.setup_clients(client)
        account_no = create_account(client, HANS)
        client.post("/client/deposit", json={"accountId": account_no, "amount": "100"}, auth=HANS)

        r = client.post("/client/manager", json={"accountId": account_no, "username": "jana"}, auth=HANS)
        assert r.status_code == 201
        assert r.json()["role"] == "manager"
        assert r.json()["isOwner"] is False

        r = client.post("/client/deposit", json={"accountId": account_no, "amount": "50"}, auth=JANA)
        assert r.status_code == 204
        assert "Giro: 150.00" in client.get("/client/account", auth=HANS).text

        r = client.post("/client/manager", json={"accountId": account_no, "username": "paul"}, auth=JANA)
        assert r.status_code == 403
        assert r.json()["kind"] == "NotAuthorized"

        r = client.post("/client/manager", json={"accountId": account_no, "username": "jana"}, auth=HANS)
        assert r.status_code == 409
        assert r.json()["kind"] == "DuplicateAccess"

        r = client.post("/client/manager", json={"accountId": account_no, "username": "ghost"}, auth=HANS)
        assert r.status_code == 404
