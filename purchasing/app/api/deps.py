from __future__ import annotations

from functools import lru_cache
from typing import Generator

from purchasing.app.db.session import SessionLocal
from purchasing.services.bms_client import BmsClient


def get_db() -> Generator:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache(maxsize=1)
def get_bms_client() -> BmsClient:
    # One client, hence one cached token, per process
    return BmsClient.from_settings()
