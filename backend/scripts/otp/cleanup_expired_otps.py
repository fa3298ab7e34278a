#!/usr/bin/env python3
"""
Delete expired one-time passwords

Meant to run from cron, e.g. every hour:
    0 * * * * cd /srv/sportsnation/backend && venv/bin/python scripts/otp/cleanup_expired_otps.py
"""
import logging
import sys
from pathlib import Path

BACKEND_DIR = Path(__file__).parent.parent.parent
sys.path.insert(0, str(BACKEND_DIR))

from dotenv import load_dotenv

load_dotenv(BACKEND_DIR / '.env')

from sportsnation.services.otp_service import OtpService

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger("cleanup_expired_otps")


def main() -> int:
    deleted = OtpService().cleanup_expired_otps()
    logger.info(f"Cleanup finished, {deleted} expired OTP(s) removed")
    return 0


if __name__ == '__main__':
    sys.exit(main())
