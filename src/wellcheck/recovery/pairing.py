"""Identifiers handed out when a phone is first paired with a family."""
import random
import uuid

PAIRING_CODE_MIN = 1000
PAIRING_CODE_MAX = 9999


def generate_family_id() -> str:
    return f"family_{uuid.uuid4()}"


def generate_pairing_code() -> str:
    """4-digit code the family types into their app. Not unique by itself."""
    return str(random.randint(PAIRING_CODE_MIN, PAIRING_CODE_MAX))
