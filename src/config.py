import logging
import os

from dotenv import load_dotenv


class _Config:
    LEDGER_REST_URL: str
    LEDGER_RPC_URL: str
    LEDGER_TIMEOUT_SECONDS: float
    LEDGER_HISTORY_LIMIT: int

    SUBSCRIPTION_PERIOD_DAYS: int
    RENEWAL_INTERVAL_SECONDS: int
    GENESIS_WALLET_ADDRESS: str

    DATABASE_URL: str

    LOG_LEVEL: int
    LOG_FILE: str | None

    IS_DEVELOPMENT: bool

    def __init__(self):
        load_dotenv()
        self.LEDGER_REST_URL = os.getenv("LEDGER_REST_URL", "http://localhost:3001/api/v0.1").rstrip("/")
        self.LEDGER_RPC_URL = os.getenv("LEDGER_RPC_URL", "http://localhost:3030")
        self.LEDGER_TIMEOUT_SECONDS = float(os.getenv("LEDGER_TIMEOUT_SECONDS", "10"))
        self.LEDGER_HISTORY_LIMIT = int(os.getenv("LEDGER_HISTORY_LIMIT", "25"))

        self.SUBSCRIPTION_PERIOD_DAYS = int(os.getenv("SUBSCRIPTION_PERIOD_DAYS", "31"))
        # 0 disables the background renewal job, renewals then only happen on status queries
        self.RENEWAL_INTERVAL_SECONDS = int(os.getenv("RENEWAL_INTERVAL_SECONDS", "0"))
        self.GENESIS_WALLET_ADDRESS = os.getenv("GENESIS_WALLET_ADDRESS", "")

        # Empty means the in-memory store is used
        self.DATABASE_URL = os.path.expandvars(os.getenv("DATABASE_URL", ""))

        # Configure logging
        log_level_str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.LOG_LEVEL = getattr(logging, log_level_str, logging.INFO)
        self.LOG_FILE = os.getenv("LOG_FILE", None)

        self.IS_DEVELOPMENT = os.getenv("IS_DEVELOPMENT", "False").lower() == "true"


config = _Config()
