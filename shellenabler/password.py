"""Factory-default SSH password derivation from the router serial number.

The salts come from /bin/mkxqimage in the unpacked firmware. Serial numbers
without a '/' belong to the R1D; every other model uses the "others" salt
with its dash-separated segments in reverse order.
"""

import hashlib
import logging

from .errors import EmptyInputError

logger = logging.getLogger(__name__)

SALTS = {
    "r1d": "A2E371B0-B34B-48A5-8C40-A7133F3B5D88",
    "others": "d44fb0960aa0-a5e6-4a30-250f-6d2df50a",
}


def swap_salt(salt: str) -> str:
    """Reverse the order of the dash-delimited segments of a salt."""
    return "-".join(reversed(salt.split("-")))


def get_salt(serial_number: str) -> str:
    """Pick the salt matching the shape of the serial number."""
    if "/" not in serial_number:
        logger.debug("Serial has no '/', using R1D salt")
        return SALTS["r1d"]
    logger.debug("Serial contains '/', using reversed salt for other models")
    return swap_salt(SALTS["others"])


def calculate_ssh_password(serial_number: str) -> str:
    """Derive the default root password for SSH/Telnet.

    Args:
        serial_number: Router serial number as printed on the label (e.g. "12345/E0QM98765").

    Returns:
        The first 8 hex characters of md5(serial + salt), or an empty string
        if no serial number was given.
    """
    if not serial_number:
        logger.warning("Serial number is empty, cannot derive SSH password")
        return ""

    salt = get_salt(serial_number)
    digest = hashlib.md5((serial_number + salt).encode()).hexdigest()
    password = digest[:8]
    logger.debug(f"Derived SSH password for {serial_number}: {password}")
    return password


def require_ssh_password(serial_number: str) -> str:
    """Like calculate_ssh_password() but raises EmptyInputError instead of returning ""."""
    password = calculate_ssh_password(serial_number)
    if not password:
        raise EmptyInputError("Serial number is required to derive the SSH password")
    return password
