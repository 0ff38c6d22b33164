"""Configuration for the payment to CRM sync service."""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict
from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent
LOGS_DIR = BASE_DIR / "logs"
LOGS_DIR.mkdir(exist_ok=True)

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
BETTERSTACK_SOURCE_TOKEN = os.getenv("BETTERSTACK_SOURCE_TOKEN")
BETTERSTACK_INGEST_HOST = os.getenv("BETTERSTACK_INGEST_HOST")

# HTTP server
PORT = int(os.getenv("PORT", "10000"))

# amoCRM
AMO_DOMAIN = os.getenv("AMO_DOMAIN", "https://clinicreformatormen.amocrm.ru")
AMO_ACCESS_TOKEN = os.getenv("AMO_ACCESS_TOKEN")
CRM_TIMEOUT = int(os.getenv("CRM_TIMEOUT", "20"))  # seconds per CRM call

AMO_PIPELINE_ID = int(os.getenv("AMO_PIPELINE_ID", "9884630"))
AMO_STATUS_PREPAY = int(os.getenv("AMO_STATUS_PREPAY", "81391378"))
AMO_STATUS_FULLPAY = int(os.getenv("AMO_STATUS_FULLPAY", "79666150"))

# Lead custom fields
AMO_FIELD_PREPAY = int(os.getenv("AMO_FIELD_PREPAY", "1026233"))
AMO_FIELD_FULLPAY = int(os.getenv("AMO_FIELD_FULLPAY", "1077301"))
AMO_FIELD_PAYMENT_TYPE = int(os.getenv("AMO_FIELD_PAYMENT_TYPE", "1077303"))
AMO_FIELD_PAYMENT_DATE = int(os.getenv("AMO_FIELD_PAYMENT_DATE", "1077305"))

# enum_id values of the payment type field
AMO_ENUM_PREPAYMENT = int(os.getenv("AMO_ENUM_PREPAYMENT", "837451"))
AMO_ENUM_FULL = int(os.getenv("AMO_ENUM_FULL", "837453"))

# Google Sheets queue
SPREADSHEET_ID = os.getenv("SPREADSHEET_ID")
SHEET_NAME = os.getenv("SHEET_NAME", "Payments")
GOOGLE_SERVICE_ACCOUNT_JSON = os.getenv("GOOGLE_SERVICE_ACCOUNT_JSON")
GOOGLE_SERVICE_ACCOUNT_FILE = os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE")

# Scheduler
SYNC_INTERVAL = int(os.getenv("SYNC_INTERVAL", "300"))  # seconds between passes


@dataclass(frozen=True)
class SyncConfig:
    """Immutable settings handed to the core components at startup."""

    amo_base_url: str
    amo_token: str
    crm_timeout: int
    pipeline_id: int
    status_prepay: int
    status_fullpay: int
    field_prepay: int
    field_fullpay: int
    field_payment_type: int
    field_payment_date: int
    payment_type_enums: Dict[str, int]
    spreadsheet_id: str
    sheet_name: str


def load_sync_config() -> SyncConfig:
    """Build the SyncConfig from the environment-backed settings above."""
    return SyncConfig(
        amo_base_url=f"{AMO_DOMAIN.rstrip('/')}/api/v4",
        amo_token=AMO_ACCESS_TOKEN or "",
        crm_timeout=CRM_TIMEOUT,
        pipeline_id=AMO_PIPELINE_ID,
        status_prepay=AMO_STATUS_PREPAY,
        status_fullpay=AMO_STATUS_FULLPAY,
        field_prepay=AMO_FIELD_PREPAY,
        field_fullpay=AMO_FIELD_FULLPAY,
        field_payment_type=AMO_FIELD_PAYMENT_TYPE,
        field_payment_date=AMO_FIELD_PAYMENT_DATE,
        payment_type_enums={
            "prepayment": AMO_ENUM_PREPAYMENT,
            "full": AMO_ENUM_FULL,
        },
        spreadsheet_id=SPREADSHEET_ID or "",
        sheet_name=SHEET_NAME,
    )


def validate_config():
    """Validate required configuration."""
    errors = []

    if not AMO_ACCESS_TOKEN:
        errors.append("AMO_ACCESS_TOKEN is required")

    if not SPREADSHEET_ID:
        errors.append("SPREADSHEET_ID is required")

    if not GOOGLE_SERVICE_ACCOUNT_JSON and not GOOGLE_SERVICE_ACCOUNT_FILE:
        errors.append("GOOGLE_SERVICE_ACCOUNT_JSON or GOOGLE_SERVICE_ACCOUNT_FILE is required")
    elif GOOGLE_SERVICE_ACCOUNT_FILE and not Path(GOOGLE_SERVICE_ACCOUNT_FILE).is_file():
        errors.append(f"GOOGLE_SERVICE_ACCOUNT_FILE not found: {GOOGLE_SERVICE_ACCOUNT_FILE}")

    if SYNC_INTERVAL <= 0:
        errors.append(f"SYNC_INTERVAL must be positive: {SYNC_INTERVAL}")

    if errors:
        raise ValueError("Config errors:\n  " + "\n  ".join(errors))
