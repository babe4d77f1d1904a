"""Globally unique, domain-qualified event UID generation."""

import itertools
import logging
import re
import secrets
import threading
import time

from .exceptions import InvalidUidError

logger = logging.getLogger(__name__)

UID_PATTERN = re.compile(r"^[A-Za-z0-9-]+@[A-Za-z0-9.-]+$")
_DOMAIN_PATTERN = re.compile(r"^[A-Za-z0-9.-]+$")

# 48 bits of randomness per UID
_RANDOM_BYTES = 6

_counter = itertools.count()
_counter_lock = threading.Lock()


def _base36(number: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def generate_uid(domain: str) -> str:
    """Generate a UID of the form ``<token>@<domain>``.

    The token combines a nanosecond timestamp, a per-process counter and a
    random suffix, so two calls in the same process never collide and calls
    across processes collide only with negligible probability.

    Args:
        domain: Host or mail domain used to qualify the UID

    Returns:
        UID matching ``^[A-Za-z0-9-]+@[A-Za-z0-9.-]+$``

    Raises:
        InvalidUidError: If the domain contains characters outside
            ``[A-Za-z0-9.-]``
    """
    domain = (domain or "").strip()
    if not domain or not _DOMAIN_PATTERN.match(domain):
        raise InvalidUidError("domain", f"Invalid UID domain: {domain!r}")

    with _counter_lock:
        sequence = next(_counter)

    token = "-".join(
        (
            _base36(time.time_ns()),
            _base36(sequence),
            secrets.token_hex(_RANDOM_BYTES),
        )
    )
    uid = f"{token}@{domain}"
    logger.debug("Generated UID %s", uid)
    return uid


def is_valid_uid(uid: str) -> bool:
    """Check that a UID contains exactly one ``@`` with text on both sides."""
    if not uid or uid.count("@") != 1:
        return False
    local, domain = uid.split("@")
    return bool(local.strip()) and bool(domain.strip())
