"""Canonical field signing shared with the UPay processor.

Both directions use the same scheme: sort the field names, join them as
``key=value`` pairs with ``&``, append the shared secret with no separator and
take the SHA-256 hex digest of the UTF-8 bytes.

Values are not escaped. A value containing ``=`` or ``&`` can make two
different field sets canonicalize to the same string; the processor computes
digests the same way, so the join format cannot change on this side alone.
"""

import hashlib
import hmac
import logging
import math
from collections.abc import Mapping
from decimal import Decimal
from typing import Union

logger = logging.getLogger(__name__)

Scalar = Union[str, int, float, bool, Decimal, None]
SignableMessage = Mapping[str, Scalar]

SIGN_FIELD = "sign"


def _render_float(value: float) -> str:
    """Number-to-string as the processor's JavaScript runtime does it.

    Shortest round-trip digits, positional for 1e-6 <= |x| < 1e21, otherwise
    ``d.ddde+N`` / ``d.ddde-N`` with an unpadded exponent.
    """

    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    sign_prefix = "-" if value < 0 else ""
    # repr() yields the shortest digit string that round-trips.
    _, digit_tuple, exponent = Decimal(repr(abs(value))).as_tuple()
    digits = "".join(map(str, digit_tuple)).rstrip("0")
    exponent += len(digit_tuple) - len(digits)
    k = len(digits)
    n = exponent + k

    if k <= n <= 21:
        body = digits + "0" * (n - k)
    elif 0 < n <= 21:
        body = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        body = "0." + "0" * -n + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        body = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign_prefix + body


def render_value(value: Scalar) -> str:
    """Render one field value exactly as the processor stringifies it.

    Floats follow JavaScript number formatting (``1.0`` -> ``1``,
    ``1e-05`` -> ``0.00001``), booleans are lowercase and ``None`` renders
    as ``null``.
    """

    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _render_float(value)
    if isinstance(value, Decimal):
        return str(value)
    if value is None:
        return "null"
    raise TypeError(f"cannot sign non-scalar value of type {type(value).__name__}")


def canonical_string(fields: SignableMessage) -> str:
    """Join fields as sorted ``key=value`` pairs separated by ``&``."""

    return "&".join(f"{key}={render_value(fields[key])}" for key in sorted(fields))


def sign(fields: SignableMessage, secret: str) -> str:
    """Return the lowercase hex SHA-256 digest of the canonical string plus secret.

    The caller strips any existing ``sign`` field first; it is hashed like any
    other field if left in.
    """

    base = canonical_string(fields)
    logger.debug("sign base string: %s<secret>", base)
    return hashlib.sha256((base + secret).encode("utf-8")).hexdigest()


def verify(fields: SignableMessage, claimed_digest: object, secret: str) -> bool:
    """Check ``claimed_digest`` against a freshly computed digest.

    Comparison is case-sensitive and constant-time. A claimed digest that is
    not an ASCII string, or fields that cannot be UTF-8 encoded (lone
    surrogates), simply fail to match.
    """

    if not isinstance(claimed_digest, str) or not claimed_digest.isascii():
        return False
    try:
        expected = sign(fields, secret)
    except UnicodeEncodeError:
        return False
    return hmac.compare_digest(expected, claimed_digest)


def strip_signature(fields: Mapping[str, object]) -> tuple[dict[str, object], object]:
    """Return a copy of ``fields`` without ``sign`` plus the removed value."""

    remaining = dict(fields)
    claimed = remaining.pop(SIGN_FIELD, None)
    return remaining, claimed
