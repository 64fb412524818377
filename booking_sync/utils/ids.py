"""Provisional local ids for records the CRM has not assigned an id to yet."""

IMPORT_PREFIX = "import-"
ICAL_PREFIX = "ical-"
CHANNEL_PROPERTY_PREFIX = "ch-"

PROVISIONAL_PREFIXES = (IMPORT_PREFIX, ICAL_PREFIX)


def provisional_id(prefix: str, external_id: str) -> str:
    return f"{prefix}{external_id}"


def is_provisional(record_id: str | None) -> bool:
    """True for a local id that does not (yet) exist in the CRM."""
    return bool(record_id) and str(record_id).startswith(PROVISIONAL_PREFIXES)
