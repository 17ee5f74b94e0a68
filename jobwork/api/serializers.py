"""
Record to JSON-ready dict conversion for responses.
"""
from dataclasses import asdict
from typing import Iterable, Optional


def serialize(record, exclude: Iterable[str] = ()) -> Optional[dict]:
    if record is None:
        return None
    data = asdict(record)
    for key in exclude:
        data.pop(key, None)
    return data


def serialize_user(user) -> Optional[dict]:
    return serialize(user, exclude=("hashed_password",))


def serialize_offer_for_buyer(offer) -> dict:
    # Buyers see the curated terms, not which quotes fed them
    return serialize(offer, exclude=("quote_ids", "admin_id"))
