# scripts/init_db.py
import logging

from cardwise import create_db_and_tables
from cardwise.config import settings

logger = logging.getLogger(__name__)


def init():
    logging.basicConfig(level=settings.log_level)
    logger.info("Initializing database...")
    create_db_and_tables()
    logger.info(f"Tables created at '{settings.database_url}'.")


if __name__ == "__main__":
    init()
