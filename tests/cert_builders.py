"""Builders of entitlement, product and consumer certificates for tests."""

import base64
import datetime
import json
import textwrap
import zlib

from asn1crypto import core
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


def pem_block(label: str, data: bytes) -> str:
    """Encode data as a PEM block."""
    body = "\n".join(textwrap.wrap(base64.b64encode(data).decode(), 64))
    return f"-----BEGIN {label}-----\n{body}\n-----END {label}-----\n"


def der_utf8_string(value: str) -> bytes:
    """Encode a DER UTF8String."""
    return core.UTF8String(value).dump()


def sample_products() -> list[dict]:
    """Products of a typical RHEL entitlement."""
    return [
        {
            "id": "479",
            "name": "Red Hat Enterprise Linux for x86_64",
            "version": "11.0",
            "architectures": ["x86_64"],
            "content": [
                {
                    "id": "1001",
                    "type": "yum",
                    "name": "Red Hat Enterprise Linux 11 for x86_64 - BaseOS (RPMs)",
                    "label": "rhel-11-for-x86_64-baseos-rpms",
                    "vendor": "Red Hat",
                    "path": "/content/dist/rhel11/$releasever/x86_64/baseos/os",
                    "gpg_url": "file:///etc/pki/rpm-gpg/RPM-GPG-KEY-redhat-release",
                    "metadata_expire": 86400,
                    "required_tags": ["rhel-11-x86_64"],
                    "arches": ["x86_64"],
                },
                {
                    "id": "1002",
                    "type": "yum",
                    "name": "Red Hat Enterprise Linux 11 for x86_64 - AppStream (RPMs)",
                    "label": "rhel-11-for-x86_64-appstream-rpms",
                    "vendor": "Red Hat",
                    "path": "/content/dist/rhel11/$releasever/x86_64/appstream/os",
                    "gpg_url": "file:///etc/pki/rpm-gpg/RPM-GPG-KEY-redhat-release",
                    "metadata_expire": 86400,
                    "required_tags": ["rhel-11-x86_64"],
                    "arches": ["x86_64"],
                },
                {
                    "id": "1003",
                    "type": "yum",
                    "name": "Red Hat Enterprise Linux 11 for x86_64 - BaseOS (Debug RPMs)",
                    "label": "rhel-11-for-x86_64-baseos-debug-rpms",
                    "vendor": "Red Hat",
                    "path": "/content/dist/rhel11/$releasever/x86_64/baseos/debug",
                    "enabled": False,
                    "gpg_url": "",
                    "required_tags": ["rhel-11-x86_64"],
                    "arches": ["x86_64"],
                },
            ],
        }
    ]


def entitlement_document(products: list[dict]) -> dict:
    """Complete ENTITLEMENT DATA document."""
    return {
        "consumer": "3f1c0a3e-5c1b-4a36-a5a5-2f9c7e3b9d11",
        "subscription": {"sku": "SKU123", "name": "Simple Content Access"},
        "order": {"start": "2026-01-01T00:00:00+0000", "end": "2027-01-01T00:00:00+0000"},
        "products": products,
        "pool": {},
    }


def entitlement_pem(products: list[dict]) -> str:
    """Entitlement certificate: certificate, ENTITLEMENT DATA and signature blocks."""
    payload = zlib.compress(json.dumps(entitlement_document(products)).encode())
    return (
        pem_block("CERTIFICATE", b"not a real certificate")
        + pem_block("ENTITLEMENT DATA", payload)
        + pem_block("RSA SIGNATURE", b"not a real signature")
    )


def _self_signed(subject: x509.Name, extensions: list[x509.ExtensionType] = ()) -> bytes:
    key = ec.generate_private_key(ec.SECP256R1())
    now = datetime.datetime.now(datetime.timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=365))
    )
    for extension in extensions:
        builder = builder.add_extension(extension, critical=False)
    cert = builder.sign(key, hashes.SHA256())
    return cert.public_bytes(serialization.Encoding.PEM)


def product_cert_pem(product_id: str, tags: list[str]) -> bytes:
    """Product certificate providing the given tags."""
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, f"Red Hat Product ID [{product_id}]")])
    extensions = [
        x509.UnrecognizedExtension(
            x509.ObjectIdentifier(f"1.3.6.1.4.1.2312.9.1.{product_id}.1"),
            der_utf8_string("Red Hat Enterprise Linux for x86_64"),
        ),
        x509.UnrecognizedExtension(
            x509.ObjectIdentifier(f"1.3.6.1.4.1.2312.9.1.{product_id}.4"),
            der_utf8_string(",".join(tags)),
        ),
    ]
    return _self_signed(subject, extensions)


def consumer_cert_pem(uuid: str, owner: str) -> bytes:
    """Consumer identity certificate."""
    subject = x509.Name(
        [
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, owner),
            x509.NameAttribute(NameOID.COMMON_NAME, uuid),
        ]
    )
    return _self_signed(subject)
