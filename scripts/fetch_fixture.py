import sys
from pathlib import Path
from typing import Any, Optional, Union

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import argparse
import json
import os
from datetime import timedelta

from dotenv import load_dotenv

from booking_sync.config import CHANNEL_IMPORT_FUTURE_DAYS, CHANNEL_IMPORT_PAST_DAYS
from booking_sync.db.engine import engine
from booking_sync.db.readers.properties import get_property, get_property_with_channel_credentials
from booking_sync.network import channel
from booking_sync.utils.datetime import local_today

load_dotenv()

# === TOKEN LOADER ===


def get_token_for_property(property_id: Optional[str] = None) -> str:
    """Access token from the refresh token stored on a property (or the first one with credentials)."""
    with engine.connect() as conn:
        prop = get_property(conn, property_id) if property_id else get_property_with_channel_credentials(conn)
    if not prop or not prop.get("channel_refresh_token"):
        raise RuntimeError("No channel-manager credentials stored; run the channel setup first")
    return channel.token_for_property(prop)


# === FIXTURE FETCH + SAVE ===


def save_fixture(data: Union[dict[str, object], list[dict[str, Any]]], filename: str) -> None:
    os.makedirs("tests/fixtures", exist_ok=True)
    path = f"tests/fixtures/{filename}"
    with open(path, "w") as f:
        json.dump(data, f, indent=2, default=str)
    print(f"Saved {filename} ({len(data) if isinstance(data, list) else 'dict'})")


# === Master fetch ===


def fetch_all_fixtures(token: str) -> None:
    save_fixture(channel.fetch_properties(token), "channel_properties.json")

    today = local_today()
    bookings = channel.fetch_bookings(
        token,
        today - timedelta(days=CHANNEL_IMPORT_PAST_DAYS),
        today + timedelta(days=CHANNEL_IMPORT_FUTURE_DAYS),
    )
    save_fixture(bookings, "channel_bookings.json")


# === CLI ===

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Fetch and save channel-manager API fixtures.")
    parser.add_argument("--property", help="Local property id holding the credentials (optional)")
    args = parser.parse_args()

    token = get_token_for_property(args.property)
    fetch_all_fixtures(token)
