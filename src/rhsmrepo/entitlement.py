from __future__ import annotations

"""
Installed entitlement certificates and keys.

Entitlement certificates live in the entitlement directory as
``<serial>.pem`` with their key in ``<serial>-key.pem``. A serial is only
usable when both files are present.
"""

import logging
import os
from pathlib import Path
from typing import Iterable

from rhsmrepo.content.models import EntitlementCertificateKey, EntitlementCertificateKeyRecord
from rhsmrepo.core.errors import WriteError

logger = logging.getLogger(__name__)

KEY_SUFFIX = "-key.pem"
CERT_SUFFIX = ".pem"


def entitlement_cert_path(cert_dir: Path, serial: int) -> Path:
    """Path of the entitlement certificate for a serial (<dir>/<serial>.pem)."""
    return Path(cert_dir) / f"{serial}{CERT_SUFFIX}"


def entitlement_key_path(cert_dir: Path, serial: int) -> Path:
    """Path of the entitlement key for a serial (<dir>/<serial>-key.pem)."""
    return Path(cert_dir) / f"{serial}{KEY_SUFFIX}"


def _serial_from_filename(filename: str, suffix: str) -> int | None:
    try:
        return int(filename[: -len(suffix)])
    except ValueError:
        return None


def serial_from_cert_filename(filename: str) -> int | None:
    """Get the serial number from an entitlement certificate file name.

    Args:
        filename: File name such as "1234.pem"

    Returns:
        Serial number, or None for key files and other names
    """
    if filename.endswith(KEY_SUFFIX) or not filename.endswith(CERT_SUFFIX):
        return None
    return _serial_from_filename(filename, CERT_SUFFIX)


def get_installed_entitlement_keys(cert_dir: Path) -> dict[int, EntitlementCertificateKey]:
    """Find installed entitlement certificate/key pairs.

    Files whose name is not a serial number are ignored. A certificate
    without its key (or a key without its certificate) is logged and left out.

    Args:
        cert_dir: Entitlement certificate directory

    Returns:
        Map of serial to certificate/key pair

    Raises:
        OSError: If the directory cannot be listed
    """
    certs: dict[int, Path] = {}
    keys: dict[int, Path] = {}

    for file_path in sorted(Path(cert_dir).iterdir()):
        name = file_path.name
        if name.endswith(KEY_SUFFIX):
            target, serial = keys, _serial_from_filename(name, KEY_SUFFIX)
        elif name.endswith(CERT_SUFFIX):
            target, serial = certs, serial_from_cert_filename(name)
        else:
            continue
        if serial is None:
            logger.debug(f"Failed to parse serial number from file name: {name}")
            continue
        target[serial] = file_path

    installed: dict[int, EntitlementCertificateKey] = {}
    for serial in sorted(certs.keys() | keys.keys()):
        if serial not in keys:
            logger.warning(f"Key is missing, ignoring entitlement certificate with serial {serial}")
            continue
        if serial not in certs:
            logger.warning(f"Certificate is missing, ignoring entitlement key with serial {serial}")
            continue
        installed[serial] = EntitlementCertificateKey(
            serial=serial, cert_path=certs[serial], key_path=keys[serial]
        )

    return installed


def write_pem_file(path: Path, content: str, mode: int | None = None) -> Path:
    """Write a PEM certificate or key to a file.

    Args:
        path: Destination file
        content: PEM text
        mode: Optional permission bits to set (e.g., 0o640)

    Returns:
        Path to the written file

    Raises:
        WriteError: If content is empty or the file cannot be written
    """
    if not content:
        raise WriteError(
            f"Canceling writing PEM file {path}, because provided content is empty", path=str(path)
        )

    try:
        path.write_text(content)
        if mode is not None:
            os.chmod(path, mode)
    except OSError as e:
        raise WriteError(f"Unable to write {path}: {e}", path=str(path)) from e

    logger.debug(f"Installed {path}")
    return path


def install_entitlement_certificates(
    records: Iterable[EntitlementCertificateKeyRecord], cert_dir: Path
) -> list[int]:
    """Install entitlement certificates and keys issued by the server.

    A failure for one serial never stops the others. A certificate whose key
    cannot be written is removed again, because it is useless without it.

    Args:
        records: Certificate/key records returned by the server
        cert_dir: Entitlement certificate directory

    Returns:
        Serials installed with both certificate and key
    """
    installed: list[int] = []

    for record in records:
        serial = record.serial.serial
        cert_file = entitlement_cert_path(cert_dir, serial)
        try:
            write_pem_file(cert_file, record.cert)
        except WriteError as e:
            logger.error(f"Unable to install entitlement certificate: {e}")
            continue

        try:
            write_pem_file(entitlement_key_path(cert_dir, serial), record.key)
        except WriteError as e:
            logger.error(f"Unable to write entitlement key: {e}")
            try:
                cert_file.unlink()
            except OSError as remove_error:
                logger.error(f"Unable to remove entitlement certificate {cert_file}: {remove_error}")
            continue

        installed.append(serial)

    return installed
