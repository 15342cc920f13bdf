from __future__ import annotations

"""
Entitlement client.

RhsmClient ties the pieces together: it reads the installed entitlement
certificates, merges the content overrides declared on the entitlement
server, writes the repository file and discovers the releases available on
the CDN.
"""

import logging
from functools import partial
from pathlib import Path
from typing import Iterable, Optional

from cryptography import x509
from cryptography.x509.oid import NameOID

from rhsmrepo.content.models import EngineeringProduct, EntitlementCertificateKeyRecord
from rhsmrepo.content.overrides import OverrideMap, create_override_map, fetch_content_overrides
from rhsmrepo.content.parser import create_product_map, load_products_from_directory
from rhsmrepo.content.repofile import RepoFileOptions, write_repo_file
from rhsmrepo.core.config import RhsmConfig, load_config
from rhsmrepo.core.connection import (
    Connection,
    create_consumer_connection,
    create_entitlement_connection,
)
from rhsmrepo.core.errors import NotRegisteredError, ReleaseTagError
from rhsmrepo.entitlement import (
    entitlement_cert_path,
    entitlement_key_path,
    get_installed_entitlement_keys,
    install_entitlement_certificates,
)
from rhsmrepo.release import listing
from rhsmrepo.release.tags import (
    create_list_of_content_tags,
    filter_products_by_os_release,
    read_os_release,
    read_product_certificates,
)

logger = logging.getLogger(__name__)

ProductsMap = dict[int, list[EngineeringProduct]]


def load_consumer_certificate(path: Path) -> x509.Certificate:
    """Load the consumer certificate.

    Raises:
        NotRegisteredError: If the certificate is missing or cannot be parsed
    """
    try:
        return x509.load_pem_x509_certificate(path.read_bytes())
    except OSError as e:
        raise NotRegisteredError(f"Failed to read consumer certificate {path}: {e}") from e
    except ValueError as e:
        raise NotRegisteredError(f"Failed to parse consumer certificate {path}: {e}") from e


def _subject_attribute(cert: x509.Certificate, oid: x509.ObjectIdentifier, path: Path) -> str:
    attributes = cert.subject.get_attributes_for_oid(oid)
    if not attributes:
        raise NotRegisteredError(f"Consumer certificate {path} has no subject attribute {oid.dotted_string}")
    value = attributes[0].value
    return value.decode() if isinstance(value, bytes) else value


def get_consumer_uuid(path: Path) -> str:
    """Get the consumer UUID (subject CN of the consumer certificate)."""
    cert = load_consumer_certificate(path)
    return _subject_attribute(cert, NameOID.COMMON_NAME, path)


def get_owner(path: Path) -> str:
    """Get the owner key (subject O of the consumer certificate)."""
    cert = load_consumer_certificate(path)
    return _subject_attribute(cert, NameOID.ORGANIZATION_NAME, path)


class RhsmClient:
    """Client-side entitlement engine."""

    def __init__(
        self,
        config: RhsmConfig,
        entitlement_connection: Optional[Connection] = None,
        consumer_connection: Optional[Connection] = None,
    ):
        """Initialize client.

        Args:
            config: rhsm.conf configuration
            entitlement_connection: CDN connection (None if no entitlement is installed)
            consumer_connection: Entitlement server connection (None if not registered)
        """
        self.config = config
        self.entitlement_connection = entitlement_connection
        self.consumer_connection = consumer_connection

    @classmethod
    def from_config_file(cls, config_path: Optional[Path] = None) -> "RhsmClient":
        """Create client and its connections from rhsm.conf.

        The CDN connection uses the installed entitlement with the highest
        serial. Connections are only created when the needed certificate and
        key are installed.

        Args:
            config_path: Configuration file (default lookup when None)
        """
        config = load_config(config_path)

        entitlement_connection = None
        cert_dir = config.rhsm.get_entitlement_cert_dir()
        if cert_dir.is_dir():
            keys = get_installed_entitlement_keys(cert_dir)
            if keys:
                cert_key = keys[max(keys)]
                logger.debug(f"Using entitlement certificate {cert_key.cert_path} for CDN")
                entitlement_connection = create_entitlement_connection(config, cert_key)

        return cls(
            config,
            entitlement_connection=entitlement_connection,
            consumer_connection=create_consumer_connection(config),
        )

    @property
    def entitlement_cert_dir(self) -> Path:
        return self.config.rhsm.get_entitlement_cert_dir()

    @property
    def repo_file_path(self) -> Path:
        return Path(self.config.rhsm.repo_file_path)

    def close(self) -> None:
        """Close open connections."""
        for connection in (self.entitlement_connection, self.consumer_connection):
            if connection is not None:
                connection.close()

    def get_engineering_products(self) -> ProductsMap:
        """Get engineering products of all installed entitlement certificates.

        Returns:
            Map of certificate serial to engineering products (empty if the
            entitlement directory does not exist)
        """
        if not self.entitlement_cert_dir.is_dir():
            logger.debug(f"Entitlement directory {self.entitlement_cert_dir} does not exist")
            return {}
        return load_products_from_directory(self.entitlement_cert_dir)

    def get_release_tags(self) -> list[str]:
        """Get tags provided by installed products matching the running distribution.

        Raises:
            ReleaseTagError: If no product certificate is installed, os-release
                cannot be read, or no product matches it
        """
        products = read_product_certificates(self.config.rhsm.get_product_cert_dirs())
        if not products:
            raise ReleaseTagError("No installed product certificate found")

        os_release = read_os_release(Path(self.config.rhsm.os_release_path))
        filtered = filter_products_by_os_release(products, os_release)
        logger.debug(f"Getting release tags from installed products: {[str(p.path) for p in filtered]}")
        return create_list_of_content_tags(filtered)

    def get_consumer_uuid(self) -> str:
        """Get UUID of the registered consumer.

        Raises:
            NotRegisteredError: If the consumer certificate is missing or invalid
        """
        return get_consumer_uuid(self.config.rhsm.get_consumer_cert_path())

    def get_owner(self) -> str:
        """Get owner of the registered consumer.

        Raises:
            NotRegisteredError: If the consumer certificate is missing or invalid
        """
        return get_owner(self.config.rhsm.get_consumer_cert_path())

    def get_content_overrides(self) -> OverrideMap:
        """Get content overrides of this consumer from the entitlement server.

        Raises:
            NotRegisteredError: If the system is not registered
            ContentOverrideError: If the server request fails
        """
        if self.consumer_connection is None:
            raise NotRegisteredError("Connection to entitlement server does not exist; system is not registered")
        overrides = fetch_content_overrides(self.consumer_connection, self.get_consumer_uuid())
        return create_override_map(overrides)

    def repo_file_options(self) -> RepoFileOptions:
        """Repository file options from the [rhsm] section."""
        return RepoFileOptions(base_url=self.config.rhsm.baseurl, ca_cert=self.config.rhsm.repo_ca_cert)

    def generate_repo_file(
        self,
        overrides: Optional[OverrideMap] = None,
        products_map: Optional[ProductsMap] = None,
    ) -> Path:
        """Write the repository file.

        Args:
            overrides: Content overrides (none when None)
            products_map: Products to write (installed certificates when None)

        Returns:
            Path to the repository file

        Raises:
            WriteError: If the file cannot be written
        """
        if products_map is None:
            products_map = self.get_engineering_products()

        return write_repo_file(
            products_map,
            overrides,
            self.repo_file_options(),
            cert_path=partial(entitlement_cert_path, self.entitlement_cert_dir),
            key_path=partial(entitlement_key_path, self.entitlement_cert_dir),
            dest=self.repo_file_path,
        )

    def install_and_generate(
        self,
        records: Iterable[EntitlementCertificateKeyRecord],
        overrides: Optional[OverrideMap] = None,
    ) -> Path:
        """Install entitlement certificates issued by the server and regenerate the repo file.

        Only certificates installed together with their key are written to
        the repository file.

        Args:
            records: Certificate/key records returned by the server
            overrides: Content overrides (none when None)

        Returns:
            Path to the repository file
        """
        records = list(records)
        self.entitlement_cert_dir.mkdir(parents=True, exist_ok=True)
        installed = set(install_entitlement_certificates(records, self.entitlement_cert_dir))
        logger.info(f"Installed {len(installed)} of {len(records)} entitlement certificate(s)")

        products_map = create_product_map(r for r in records if r.serial.serial in installed)
        return self.generate_repo_file(overrides, products_map)

    def get_cdn_releases(self) -> list[str]:
        """Get releases available on the CDN for the installed entitlements.

        Raises:
            NotRegisteredError: If there is no CDN connection
            ReleaseTagError: If the release tags cannot be determined
        """
        if self.entitlement_connection is None:
            raise NotRegisteredError("Connection to repository does not exist; system is not registered")

        products_map = self.get_engineering_products()
        release_tags = self.get_release_tags()
        logger.debug(f"Release tags: {release_tags}")

        return listing.get_cdn_releases(self.entitlement_connection, products_map, release_tags)
