import logging
import os
import time

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError

from app.core.config import settings

logger = logging.getLogger("wait_for_db")

timeout_s = int(os.getenv("DB_WAIT_TIMEOUT", "60"))


def wait(url: str = settings.DATABASE_URL, timeout: int = timeout_s) -> None:
    engine = create_engine(url, pool_pre_ping=True)
    start = time.time()
    logger.info("waiting for database %s (timeout=%ss)", engine.url.render_as_string(hide_password=True), timeout)
    try:
        while True:
            try:
                with engine.connect() as conn:
                    conn.execute(text("SELECT 1"))
                logger.info("database is ready")
                return
            except OperationalError as e:
                if time.time() - start > timeout:
                    logger.error("timed out waiting for database: %s", e)
                    raise
                time.sleep(1)
    finally:
        engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    wait()
