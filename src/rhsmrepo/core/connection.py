from __future__ import annotations

"""
HTTPS connections to the entitlement server and the CDN.

This module wraps a requests session configured with a client certificate,
CA verification and proxy settings. Retries and authentication handshakes
are the responsibility of the caller.
"""

import logging
from pathlib import Path
from urllib.parse import urljoin

import requests
from requests.utils import should_bypass_proxies

from rhsmrepo.core.config import RhsmConfig
from rhsmrepo.content.models import EntitlementCertificateKey

logger = logging.getLogger(__name__)


class Connection:
    """Authenticated HTTPS connection rooted at a base URL."""

    def __init__(
        self,
        base_url: str,
        cert_file: str | None = None,
        key_file: str | None = None,
        ca_cert: str | None = None,
        verify: bool = True,
        proxy_url: str | None = None,
        no_proxy: str | None = None,
        timeout: int = 180,
    ):
        """Initialize connection.

        Args:
            base_url: Base URL all request paths are joined to
            cert_file: Client certificate (PEM) for mTLS
            key_file: Client key (PEM) for mTLS
            ca_cert: CA bundle used to verify the server
            verify: Verify the server certificate
            proxy_url: Proxy URL for both http and https
            no_proxy: Comma separated list of hosts bypassing the proxy
            timeout: Request timeout in seconds
        """
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.cert_file = cert_file
        self.key_file = key_file
        self.ca_cert = ca_cert
        self.verify = verify
        self.proxy_url = proxy_url
        self.no_proxy = no_proxy
        self.timeout = timeout

        # Setup HTTP session
        self.session = self._setup_session()

    def _setup_session(self) -> requests.Session:
        """Setup requests session with client certificate, SSL and proxy configuration.

        Returns:
            Configured requests session
        """
        session = requests.Session()

        # Setup proxy
        if self.proxy_url:
            session.proxies.update({"http": self.proxy_url, "https": self.proxy_url})

        # Setup SSL/TLS verification
        if not self.verify:
            session.verify = False
        elif self.ca_cert:
            session.verify = self.ca_cert

        # Setup client certificate for mTLS if configured
        if self.cert_file:
            if self.key_file:
                session.cert = (self.cert_file, self.key_file)
            else:
                session.cert = self.cert_file

        return session

    def url_for(self, path: str) -> str:
        """Build the absolute URL for a request path."""
        return urljoin(self.base_url, path.lstrip("/"))

    def proxies_for(self, url: str) -> dict[str, str | None] | None:
        """Per-request proxy settings for a URL.

        requests only honors no_proxy from the environment, so hosts listed
        in no_proxy get the session proxies cleared for their request.

        Returns:
            Proxies clearing the session proxies, or None to use the session proxies
        """
        if self.proxy_url and self.no_proxy and should_bypass_proxies(url, no_proxy=self.no_proxy):
            logger.debug(f"Bypassing proxy for {url}")
            return {"http": None, "https": None}
        return None

    def get(self, path: str, headers: dict[str, str] | None = None) -> requests.Response:
        """Send a GET request.

        Args:
            path: Path relative to the base URL
            headers: Optional extra headers

        Returns:
            The response (any status code)

        Raises:
            requests.RequestException: On transport errors
        """
        url = self.url_for(path)
        logger.debug(f"GET {url}")
        return self.session.get(url, headers=headers, timeout=self.timeout, proxies=self.proxies_for(url))

    def close(self) -> None:
        """Close the underlying session."""
        self.session.close()


def create_entitlement_connection(
    config: RhsmConfig, cert_key: EntitlementCertificateKey
) -> Connection:
    """Create a CDN connection authenticated with an entitlement certificate.

    Args:
        config: rhsm.conf configuration
        cert_key: Installed entitlement certificate/key pair

    Returns:
        Connection rooted at the CDN base URL
    """
    return Connection(
        base_url=config.rhsm.baseurl,
        cert_file=str(cert_key.cert_path),
        key_file=str(cert_key.key_path),
        ca_cert=config.rhsm.repo_ca_cert,
        verify=not config.server.insecure,
        proxy_url=config.server.proxy_url,
        no_proxy=config.server.no_proxy or None,
        timeout=config.server.server_timeout,
    )


def create_consumer_connection(config: RhsmConfig) -> Connection | None:
    """Create an entitlement server connection authenticated with the consumer certificate.

    Args:
        config: rhsm.conf configuration

    Returns:
        Connection, or None if the consumer certificate/key is not installed
    """
    cert_path = config.rhsm.get_consumer_cert_path()
    key_path = config.rhsm.get_consumer_key_path()
    if not cert_path.exists() or not key_path.exists():
        logger.debug(f"Consumer certificate or key not found in {config.rhsm.consumer_cert_dir}")
        return None

    ca_bundle = Path(config.rhsm.ca_cert_dir)
    return Connection(
        base_url=config.server.base_url,
        cert_file=str(cert_path),
        key_file=str(key_path),
        ca_cert=str(ca_bundle) if ca_bundle.exists() else None,
        verify=not config.server.insecure,
        proxy_url=config.server.proxy_url,
        no_proxy=config.server.no_proxy or None,
        timeout=config.server.server_timeout,
    )
