"""
Configuration and shared helpers
"""

import os
import re
import logging
from datetime import datetime, timezone
import pytz
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

# Load .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

logger = logging.getLogger("config")

# MongoDB
MONGO_URL = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
DB_NAME = os.environ.get('DB_NAME', 'anwar_crm')

client = AsyncIOMotorClient(MONGO_URL)
db = client[DB_NAME]

# WhatsApp gateway (Maytapi)
MAYTAPI_API_URL = os.environ.get('MAYTAPI_API_URL', '')
MAYTAPI_API_KEY = os.environ.get('MAYTAPI_API_KEY', '')
MAYTAPI_PRODUCT_ID = os.environ.get('MAYTAPI_PRODUCT_ID', '')
MAYTAPI_MAX_MESSAGE_LENGTH = int(os.environ.get('MAYTAPI_MAX_MESSAGE_LENGTH', '4096'))

# Email
SENDGRID_API_KEY = os.environ.get('SENDGRID_API_KEY', '')
SENDER_EMAIL = os.environ.get('SENDER_EMAIL', 'noreply@anwargroup.com')
ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', 'asim.ilyus@anwargroup.com')
SUPPORT_EMAIL = os.environ.get('SUPPORT_EMAIL', 'asim.ilyus@anwargroup.com')

# Runtime
APP_TIMEZONE = os.environ.get('APP_TIMEZONE', 'Asia/Dhaka')
APP_TZ = pytz.timezone(APP_TIMEZONE)
PUBLIC_BASE_URL = os.environ.get('PUBLIC_BASE_URL', 'http://localhost:8001')
ENABLE_SCHEDULER = os.environ.get('ENABLE_SCHEDULER', 'false').lower() == 'true'

# Bot
CONVERSATION_TTL_SECONDS = int(os.environ.get('CONVERSATION_TTL_SECONDS', '600'))
BOT_RATE_LIMIT_MAX = int(os.environ.get('BOT_RATE_LIMIT_MAX', '10'))
BOT_RATE_LIMIT_WINDOW_SECONDS = int(os.environ.get('BOT_RATE_LIMIT_WINDOW_SECONDS', '300'))

# Settings the health check expects to be present
REQUIRED_SETTINGS = {
    "MONGO_URL": MONGO_URL,
    "DB_NAME": DB_NAME,
    "MAYTAPI_API_URL": MAYTAPI_API_URL,
    "MAYTAPI_API_KEY": MAYTAPI_API_KEY,
    "MAYTAPI_PRODUCT_ID": MAYTAPI_PRODUCT_ID,
    "SENDGRID_API_KEY": SENDGRID_API_KEY,
    "ADMIN_EMAIL": ADMIN_EMAIL,
}


# ==================== HELPERS ====================

def now_iso() -> str:
    """Current UTC time as ISO string"""
    return datetime.now(timezone.utc).isoformat()


def local_now() -> datetime:
    """Current time in the business timezone"""
    return datetime.now(APP_TZ)


def today_stamp() -> str:
    """YYYYMMDD in the business timezone, used by daily IDs"""
    return local_now().strftime("%Y%m%d")


def display_time() -> str:
    """Human readable local time for message bodies and sheet cells"""
    return local_now().strftime("%Y-%m-%d %H:%M:%S")


def normalize_phone_bd(phone) -> str:
    """
    Normalise a Bangladesh phone number.
    CANONICAL FORMAT: 8801XXXXXXXXX (13 digits)

    Accepted inputs:
      +8801712345678, 008801712345678, 8801712345678 -> 8801712345678
      01712345678 -> 8801712345678
      1712345678 (leading 0 dropped) -> 8801712345678

    Anything else is returned as bare digits, unchanged.
    """
    if phone is None:
        return ""

    digits = re.sub(r"\D", "", str(phone))
    if not digits:
        return ""

    if digits.startswith("00"):
        digits = digits[2:]

    if digits.startswith("8801") and len(digits) >= 13:
        return digits[:13]
    if digits.startswith("01") and len(digits) == 11:
        return "88" + digits
    if digits.startswith("1") and len(digits) == 10:
        return "880" + digits

    if len(digits) < 11 or len(digits) > 15:
        logger.warning(f"Unusual phone number format: {phone} -> {digits}")
    return digits


def is_valid_phone_bd(phone) -> bool:
    """True for 88 + 11 digits, 01 + 9 digits or +88 + 11 digits"""
    if not phone or not isinstance(phone, str):
        return False
    cleaned = re.sub(r"[\s\-()]", "", phone)
    return bool(
        re.fullmatch(r"88\d{11}", cleaned)
        or re.fullmatch(r"01\d{9}", cleaned)
        or re.fullmatch(r"\+88\d{11}", cleaned)
    )
