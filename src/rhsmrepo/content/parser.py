from __future__ import annotations

"""
Entitlement content parser.

This module turns inflated ENTITLEMENT DATA payloads into engineering
products, and collects the products of several certificates into a map keyed
by certificate serial number.
"""

import json
import logging
from pathlib import Path
from typing import Iterable

from pydantic import ValidationError

from rhsmrepo.content.decoder import decode_entitlement_blocks
from rhsmrepo.content.models import (
    EngineeringProduct,
    EntitlementCertificateKeyRecord,
    EntitlementPayload,
)
from rhsmrepo.core.errors import DecodeError, MalformedContentError
from rhsmrepo.entitlement import get_installed_entitlement_keys

logger = logging.getLogger(__name__)


def parse_entitlement_payload(data: bytes) -> EntitlementPayload:
    """Parse an inflated ENTITLEMENT DATA payload.

    Content entries keep the order of the JSON document.

    Args:
        data: Inflated JSON bytes

    Returns:
        Parsed payload

    Raises:
        MalformedContentError: If data is not JSON or not an entitlement document
    """
    try:
        document = json.loads(data)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedContentError(f"Entitlement data is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise MalformedContentError(
            f"Entitlement data must be a JSON object, got {type(document).__name__}"
        )

    try:
        return EntitlementPayload.model_validate(document)
    except ValidationError as e:
        raise MalformedContentError(f"Invalid entitlement data structure:\n{e}") from e


def products_from_certificate(document: str) -> list[EngineeringProduct]:
    """Get engineering products from a PEM encoded entitlement certificate.

    Args:
        document: Entitlement certificate (all PEM blocks)

    Returns:
        Products of every ENTITLEMENT DATA block, in document order

    Raises:
        DecodeError: If the certificate carries no decodable entitlement data
        MalformedContentError: If the entitlement data cannot be parsed
    """
    products: list[EngineeringProduct] = []
    for payload in decode_entitlement_blocks(document):
        products.extend(parse_entitlement_payload(payload).products)
    return products


def products_from_certificate_file(path: Path) -> list[EngineeringProduct]:
    """Get engineering products from an entitlement certificate file.

    Raises:
        DecodeError: If the file cannot be read or decoded
        MalformedContentError: If the entitlement data cannot be parsed
    """
    try:
        document = path.read_text()
    except (OSError, UnicodeDecodeError) as e:
        raise DecodeError(f"Unable to read entitlement certificate {path}: {e}") from e
    return products_from_certificate(document)


def load_products_from_directory(cert_dir: Path) -> dict[int, list[EngineeringProduct]]:
    """Load engineering products from all installed entitlement certificates.

    Only certificates installed together with their key are read; an orphan
    certificate is logged by the pairing scan and left out. A certificate
    that cannot be decoded or parsed is logged and left out too; it never
    aborts loading the others.

    Args:
        cert_dir: Entitlement certificate directory (e.g., /etc/pki/entitlement)

    Returns:
        Map of certificate serial to its engineering products

    Raises:
        OSError: If the directory cannot be listed
    """
    products_map: dict[int, list[EngineeringProduct]] = {}

    for serial, cert_key in get_installed_entitlement_keys(cert_dir).items():
        try:
            products_map[serial] = products_from_certificate_file(cert_key.cert_path)
        except (DecodeError, MalformedContentError) as e:
            logger.warning(f"Skipping reading content from {cert_key.cert_path}: {e}")

    return products_map


def create_product_map(
    records: Iterable[EntitlementCertificateKeyRecord],
) -> dict[int, list[EngineeringProduct]]:
    """Create map of serial to engineering products from server certificate records.

    Records whose certificate cannot be decoded or parsed are logged and left out.
    """
    products_map: dict[int, list[EngineeringProduct]] = {}
    for record in records:
        try:
            products_map[record.serial.serial] = products_from_certificate(record.cert)
        except (DecodeError, MalformedContentError) as e:
            logger.warning(
                f"Unable to get content from entitlement certificate {record.serial.serial}: {e}"
            )
    return products_map
