from __future__ import annotations

"""
Entitlement certificate payload decoder.

An entitlement certificate file holds several concatenated PEM blocks: the
X.509 certificate, the ENTITLEMENT DATA block and its signature. The
ENTITLEMENT DATA block carries a zlib compressed JSON document describing the
entitled content.
"""

import base64
import binascii
import logging
import re
import zlib
from dataclasses import dataclass
from typing import Iterator

from rhsmrepo.core.errors import DecodeError

logger = logging.getLogger(__name__)

ENTITLEMENT_DATA_LABEL = "ENTITLEMENT DATA"

_PEM_BLOCK_RE = re.compile(
    r"-----BEGIN (?P<label>[^\r\n-]+)-----(?P<body>.*?)-----END (?P=label)-----",
    re.DOTALL,
)


@dataclass(frozen=True)
class PemBlock:
    """One decoded PEM block."""

    label: str
    data: bytes


def iter_pem_blocks(document: str) -> Iterator[PemBlock]:
    """Iterate over the PEM blocks of a document in document order.

    Blocks whose body is not valid base64 are skipped.

    Args:
        document: Text containing zero or more PEM blocks

    Yields:
        PemBlock for every parseable block
    """
    for match in _PEM_BLOCK_RE.finditer(document):
        label = match.group("label")
        # Drop RFC 1421 headers (e.g., "Proc-Type: ...") before the blank line
        body = match.group("body")
        if ":" in body:
            body = body.split("\n\n", 1)[-1]
        try:
            data = base64.b64decode("".join(body.split()), validate=True)
        except (binascii.Error, ValueError) as e:
            logger.debug(f"Skipping PEM block '{label}' with invalid base64 body: {e}")
            continue
        yield PemBlock(label=label, data=data)


def inflate(data: bytes) -> bytes:
    """Inflate a zlib (or raw DEFLATE) compressed stream completely.

    Args:
        data: Compressed bytes

    Returns:
        Inflated bytes

    Raises:
        DecodeError: If the stream is corrupt or truncated
    """
    try:
        return zlib.decompress(data)
    except zlib.error as zlib_error:
        try:
            return zlib.decompress(data, -zlib.MAX_WBITS)
        except zlib.error:
            raise DecodeError(f"Unable to inflate {ENTITLEMENT_DATA_LABEL}: {zlib_error}") from zlib_error


def decode_entitlement_blocks(document: str) -> list[bytes]:
    """Inflate every ENTITLEMENT DATA block of a certificate document.

    Args:
        document: PEM encoded entitlement certificate

    Returns:
        Inflated payload of each ENTITLEMENT DATA block, in document order

    Raises:
        DecodeError: If no PEM block can be parsed, no ENTITLEMENT DATA block
            exists, or a block cannot be inflated
    """
    blocks = list(iter_pem_blocks(document))
    if not blocks:
        raise DecodeError("Unable to decode entitlement certificate: no PEM block found")

    payloads = [inflate(block.data) for block in blocks if block.label == ENTITLEMENT_DATA_LABEL]
    if not payloads:
        raise DecodeError(
            f'Unable to get content, because no block "{ENTITLEMENT_DATA_LABEL}" found'
        )

    logger.debug(f"Decoded {len(payloads)} {ENTITLEMENT_DATA_LABEL} block(s) from {len(blocks)} PEM block(s)")
    return payloads


def decode_entitlement_data(document: str) -> bytes:
    """Inflate the first ENTITLEMENT DATA block of a certificate document.

    Raises:
        DecodeError: See decode_entitlement_blocks
    """
    return decode_entitlement_blocks(document)[0]
