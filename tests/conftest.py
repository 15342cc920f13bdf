"""Shared fixtures: entitlement, product and consumer certificates."""

import tempfile
from pathlib import Path

import pytest

from cert_builders import consumer_cert_pem, entitlement_pem, product_cert_pem, sample_products


@pytest.fixture
def temp_dir():
    """Create temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def products():
    """Sample engineering products (as JSON)."""
    return sample_products()


@pytest.fixture
def entitlement_cert(products):
    """PEM encoded entitlement certificate of the sample products."""
    return entitlement_pem(products)


@pytest.fixture
def make_entitlement_cert():
    """Factory of entitlement certificates for arbitrary products."""
    return entitlement_pem


@pytest.fixture
def make_product_cert():
    """Factory of product certificates."""
    return product_cert_pem


@pytest.fixture
def make_consumer_cert():
    """Factory of consumer certificates."""
    return consumer_cert_pem
