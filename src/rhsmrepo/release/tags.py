from __future__ import annotations

"""
Release tag matching.

Content in entitlement certificates may require tags (e.g., "rhel-11-x86_64").
Installed product certificates provide tags (e.g., "rhel-11"). Content is
available to this system when one of its required tags starts with a
provided tag.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Sequence

from asn1crypto import core
from cryptography import x509

from rhsmrepo.core.errors import ReleaseTagError

logger = logging.getLogger(__name__)

# Red Hat product namespace: 1.3.6.1.4.1.2312.9.1.<product id>.<attribute>
PRODUCT_OID_PREFIX = "1.3.6.1.4.1.2312.9.1."
PRODUCT_PROVIDES_ATTRIBUTE = "4"

_PRODUCT_TAGS_OID_RE = re.compile(
    r"^" + re.escape(PRODUCT_OID_PREFIX) + r"(?P<product_id>\d+)\." + PRODUCT_PROVIDES_ATTRIBUTE + r"$"
)

# String types used for product extension values
_DER_STRING_TYPES = (core.UTF8String, core.PrintableString, core.IA5String)


def is_any_required_tag_provided(required: Sequence[str] | None, provided: Sequence[str] | None) -> bool:
    """Check if any required tag is satisfied by a provided tag.

    A provided tag satisfies a required tag when it is a prefix of it, so the
    less specific "rhel-11" satisfies "rhel-11-x86_64" (never the reverse).

    Args:
        required: Tags required by content (empty means no constraint)
        provided: Tags provided by the installed products

    Returns:
        True if content with these required tags is available
    """
    if not required:
        return True
    if not provided:
        return False

    for required_tag in required:
        for provided_tag in provided:
            if required_tag.startswith(provided_tag):
                logger.debug(f"Required tag {required_tag} matches provided tag {provided_tag}")
                return True
    return False


@dataclass(frozen=True)
class OSRelease:
    """Distribution identity read from /etc/os-release."""

    id: str
    version_id: str
    version_major: str
    version_minor: str = ""

    @property
    def tag(self) -> str:
        """Tag prefix of this release (e.g., "rhel-11")."""
        return f"{self.id.lower()}-{self.version_major}"


def parse_os_release(text: str) -> OSRelease:
    """Parse ID and VERSION_ID from os-release content.

    Args:
        text: Content of /etc/os-release

    Returns:
        Parsed OSRelease

    Raises:
        ValueError: If ID or VERSION_ID is missing
    """
    values: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        values[key.strip()] = value.strip().strip("\"'")

    os_id = values.get("ID", "")
    version_id = values.get("VERSION_ID", "")
    if not os_id or not version_id:
        raise ValueError("Unable to parse ID or VERSION_ID from os release file")

    major, _, rest = version_id.partition(".")
    minor = rest.split(".", 1)[0]
    return OSRelease(id=os_id, version_id=version_id, version_major=major, version_minor=minor)


def read_os_release(path: Path) -> OSRelease:
    """Read and parse an os-release file.

    Raises:
        ReleaseTagError: If the file cannot be read or parsed
    """
    try:
        os_release = parse_os_release(path.read_text())
    except (OSError, ValueError) as e:
        raise ReleaseTagError(f"Unable to read {path}: {e}") from e
    logger.debug(f"OS release {os_release.tag} parsed from {path}")
    return os_release


@dataclass
class InstalledProduct:
    """Product certificate installed on this system."""

    path: Path
    product_id: str
    provided_tags: list[str] = field(default_factory=list)


def decode_der_string(data: bytes) -> str:
    """Decode a DER encoded UTF8String, PrintableString or IA5String.

    Raises:
        ValueError: If data is not a single DER string
    """
    value = core.load(data, strict=True)
    if not isinstance(value, _DER_STRING_TYPES):
        raise ValueError(f"Not a DER string: {value.__class__.__name__}")
    return value.native


def read_product_certificate(path: Path) -> InstalledProduct | None:
    """Read product id and provided tags from a product certificate.

    Args:
        path: PEM encoded product certificate (e.g., /etc/pki/product/69.pem)

    Returns:
        InstalledProduct, or None if the certificate has no product extension

    Raises:
        ValueError: If the certificate cannot be loaded
        OSError: If the file cannot be read
    """
    cert = x509.load_pem_x509_certificate(path.read_bytes())

    for ext in cert.extensions:
        match = _PRODUCT_TAGS_OID_RE.match(ext.oid.dotted_string)
        if match is None:
            continue
        raw = ext.value.value if isinstance(ext.value, x509.UnrecognizedExtension) else b""
        tags_value = decode_der_string(raw)
        tags = [tag.strip() for tag in tags_value.split(",") if tag.strip()]
        return InstalledProduct(path=path, product_id=match.group("product_id"), provided_tags=tags)

    return None


def read_product_certificates(cert_dirs: Iterable[Path]) -> list[InstalledProduct]:
    """Read all product certificates from the given directories.

    Missing directories and unreadable certificates are logged and skipped.

    Args:
        cert_dirs: Product certificate directories

    Returns:
        Installed products in directory order, then file name order
    """
    products: list[InstalledProduct] = []

    for cert_dir in cert_dirs:
        if not cert_dir.is_dir():
            logger.debug(f"Product certificate directory {cert_dir} does not exist")
            continue
        for cert_file in sorted(cert_dir.glob("*.pem")):
            try:
                product = read_product_certificate(cert_file)
            except (OSError, ValueError) as e:
                logger.warning(f"Unable to read product certificate {cert_file}: {e}")
                continue
            if product is None:
                logger.debug(f"No product extension found in {cert_file}")
                continue
            products.append(product)

    return products


def filter_products_by_os_release(
    products: Iterable[InstalledProduct], os_release: OSRelease
) -> list[InstalledProduct]:
    """Keep products with a tag matching the running distribution.

    When running RHEL 11, only products providing a tag starting with
    "rhel-11" are kept.

    Raises:
        ReleaseTagError: If no product matches
    """
    release_tag = os_release.tag
    filtered: list[InstalledProduct] = []

    for product in products:
        if any(tag.startswith(release_tag) for tag in product.provided_tags):
            filtered.append(product)
        else:
            logger.warning(
                f"Skipping product {product.path}; its tags {product.provided_tags} "
                f"do not match os release {release_tag}"
            )

    if not filtered:
        raise ReleaseTagError(f"No installed product certificate matches os release {release_tag}")
    return filtered


def create_list_of_content_tags(products: Iterable[InstalledProduct]) -> list[str]:
    """Create sorted list of unique tags provided by the products."""
    tags: set[str] = set()
    for product in products:
        tags.update(product.provided_tags)
    return sorted(tags)
