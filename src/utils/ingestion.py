from typing import Any, Dict

from src.utils.models import SensorReading

# Alias sent by some device firmware -> canonical field name
FIELD_ALIASES = {
    "hr": "heartRate",
    "sugar": "glucose",
}


def normalize_reading(reading: SensorReading) -> Dict[str, Any]:
    """
    Converts a device payload into the canonical fields the state store understands.
    Only fields the device actually sent (and did not send as null) are returned;
    the canonical name wins when a device sends both it and its alias.
    """
    sent = reading.model_dump(exclude_none=True, exclude={"device_id"})
    for alias, canonical in FIELD_ALIASES.items():
        value = sent.pop(alias, None)
        if value is not None and canonical not in sent:
            sent[canonical] = value
    return sent
