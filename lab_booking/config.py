# config.py
import logging
import os
from dotenv import load_dotenv

load_dotenv()

# Hold policy
HOLD_DURATION_SECONDS = int(os.getenv('HOLD_DURATION_SECONDS', 300))
MAX_HOLDS_PER_USER = int(os.getenv('MAX_HOLDS_PER_USER', 5))

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


def configure_logging(level: str = LOG_LEVEL):
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
