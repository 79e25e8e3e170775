"""
Tests for structured logging
"""

import json
import logging
from datetime import date

from ddd_bank.amount import Amount
from ddd_bank.bank import BankService
from ddd_bank.config import ClientDeletionPolicy, OverdraftPolicy
from ddd_bank.errors import InsufficientFunds
from ddd_bank.logging_config import JSONFormatter, get_logger, log_action, setup_logging
from ddd_bank.repository import BankRepository
from ddd_bank.storage import InMemoryStorage


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TestLogging:
    """Test logger setup and structured records"""

    def setup_method(self):
        self.logger = setup_logging("DEBUG", "json")
        self.handler = RecordingHandler()
        self.logger.addHandler(self.handler)

    def teardown_method(self):
        self.logger.removeHandler(self.handler)
        setup_logging("INFO", "json")

    def test_setup_logging_replaces_handlers(self):
        logger = setup_logging("WARNING", "text")
        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        assert not logger.propagate

    def test_json_formatter(self):
        log_action(
            get_logger("ddd_bank.test"), "info", "Deposit of 10.00",
            user_id="hans", action="deposit", resource="account:1", extra={"amount": "10.00"}
        )
        entry = json.loads(JSONFormatter().format(self.handler.records[-1]))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "ddd_bank.test"
        assert entry["message"] == "Deposit of 10.00"
        assert entry["user_id"] == "hans"
        assert entry["action"] == "deposit"
        assert entry["resource"] == "account:1"
        assert entry["extra"] == {"amount": "10.00"}

    def test_disabled_level_is_skipped(self):
        setup_logging("ERROR", "json").addHandler(self.handler)
        log_action(get_logger("ddd_bank.test"), "info", "ignored")
        assert self.handler.records == []

    def test_operations_log_success_and_rejection(self):
        bank = BankService(
            BankRepository(InMemoryStorage()),
            overdraft_policy=OverdraftPolicy.REJECT,
            deletion_policy=ClientDeletionPolicy.REJECT_NONZERO_BALANCE,
            max_client_age_years=150
        )
        hans = bank.create_client("hans", date(1990, 1, 1))
        source = hans.find_account(hans.create_account("Giro").account_id)
        destination = hans.find_account(hans.create_account("Savings").account_id)
        try:
            hans.transfer(source, destination, Amount(10))
        except InsufficientFunds:
            pass

        actions = [(r.levelname, getattr(r, "action", None)) for r in self.handler.records]
        assert ("INFO", "create_client") in actions
        assert ("INFO", "create_account") in actions
        assert ("WARNING", "transfer") in actions

        rejected = [r for r in self.handler.records if getattr(r, "action", None) == "transfer"][0]
        assert rejected.extra["kind"] == "InsufficientFunds"
        assert rejected.user_id == "hans"
