from __future__ import annotations

"""
Repository file generator.

This module projects the content of entitlement certificates into a yum/dnf
repository file (typically /etc/yum.repos.d/redhat.repo). Each content entry
becomes one section; the $releasever placeholder is left for the package
manager to expand.
"""

import configparser
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Literal, Mapping

from rhsmrepo.content.models import Content, EngineeringProduct
from rhsmrepo.content.overrides import OverrideMap
from rhsmrepo.core.errors import WriteError

logger = logging.getLogger(__name__)

PathResolver = Callable[[int], "str | Path"]


@dataclass(frozen=True)
class RepoFileOptions:
    """Options for repository file generation.

    Attributes:
        base_url: CDN base URL prepended to every content path
        ca_cert: CA certificate used to verify the CDN (sslcacert)
        section_key: Content attribute used as section name ("label" or "name")
        arch_separator: Separator placed between arches
    """

    base_url: str
    ca_cert: str
    section_key: Literal["label", "name"] = "label"
    arch_separator: str = ","


def join_base_url(base_url: str, path: str) -> str:
    """Join the CDN base URL and a content path without touching placeholders."""
    if not path:
        return base_url
    return base_url.rstrip("/") + "/" + path.lstrip("/")


def _bool_value(value: bool) -> str:
    return "1" if value else "0"


def _section_name(content: Content, options: RepoFileOptions) -> str:
    if options.section_key == "name":
        return content.name or content.label or content.id
    return content.label or content.id


def _content_options(
    content: Content,
    serial: int,
    options: RepoFileOptions,
    cert_path: PathResolver,
    key_path: PathResolver,
) -> dict[str, str]:
    """Compute the options of one repository section (before overrides)."""
    enabled = _bool_value(content.is_enabled)

    section: dict[str, str] = {
        "name": content.name,
        "baseurl": join_base_url(options.base_url, content.path),
        "enabled": enabled,
        "enabled_metadata": enabled,
    }

    # gpg
    if content.gpg_url:
        section["gpgcheck"] = "1"
        section["gpgkey"] = content.gpg_url
    else:
        section["gpgcheck"] = "0"

    # ssl
    section["sslverify"] = "1"
    section["sslcacert"] = options.ca_cert
    section["sslclientkey"] = str(key_path(serial))
    section["sslclientcert"] = str(cert_path(serial))

    # metadata
    section["metadata_expire"] = str(content.metadata_expire or 0)

    if content.arches:
        section["arches"] = options.arch_separator.join(content.arches)

    section["sslverifystatus"] = "1"

    return section


def build_repo_config(
    products_map: Mapping[int, list[EngineeringProduct]],
    overrides: OverrideMap | None,
    options: RepoFileOptions,
    cert_path: PathResolver,
    key_path: PathResolver,
) -> configparser.RawConfigParser:
    """Build the repository configuration for the given products.

    Sections appear in serial order, then product order, then content order,
    so the same input always yields the same file. Overrides for a content
    label replace or extend the computed options of its section.

    Args:
        products_map: Map of certificate serial to engineering products
        overrides: Map of content label to {option: value}
        options: Generation options
        cert_path: Resolver of the entitlement certificate path for a serial
        key_path: Resolver of the entitlement key path for a serial

    Returns:
        Repository configuration
    """
    overrides = overrides or {}
    repo_config = configparser.RawConfigParser()
    # Keep option names exactly as given (overrides may use any case)
    repo_config.optionxform = str  # type: ignore[assignment,method-assign]

    for serial in sorted(products_map):
        for product in products_map[serial]:
            for content in product.content:
                section_name = _section_name(content, options)
                if section_name == repo_config.default_section:
                    logger.warning(
                        f"Skipping content {content.id} (serial {serial}, product {product.id}); "
                        f"'{section_name}' cannot be used as a repository name"
                    )
                    continue
                if repo_config.has_section(section_name):
                    logger.warning(
                        f"Duplicate repository '{section_name}' (serial {serial}, "
                        f"product {product.id}); replacing previous definition"
                    )
                    repo_config.remove_section(section_name)
                repo_config.add_section(section_name)

                for key, value in _content_options(
                    content, serial, options, cert_path, key_path
                ).items():
                    repo_config.set(section_name, key, value)

                for key, value in overrides.get(content.label, {}).items():
                    logger.debug(f"Applying content override {key}={value} to {section_name}")
                    repo_config.set(section_name, key, value)

    return repo_config


def write_repo_file(
    products_map: Mapping[int, list[EngineeringProduct]],
    overrides: OverrideMap | None,
    options: RepoFileOptions,
    cert_path: PathResolver,
    key_path: PathResolver,
    dest: Path,
) -> Path:
    """Generate the repository file and write it to dest.

    The file is replaced as a whole. No products yields an empty file.

    Args:
        products_map: Map of certificate serial to engineering products
        overrides: Map of content label to {option: value}
        options: Generation options
        cert_path: Resolver of the entitlement certificate path for a serial
        key_path: Resolver of the entitlement key path for a serial
        dest: Destination file (e.g., /etc/yum.repos.d/redhat.repo)

    Returns:
        Path to the written file

    Raises:
        WriteError: If the file cannot be written
    """
    repo_config = build_repo_config(products_map, overrides, options, cert_path, key_path)

    # Write to temp file in the same directory, then rename into place
    temp_name: str | None = None
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w", dir=dest.parent, prefix=f".{dest.name}.", delete=False
        ) as tmp_file:
            temp_name = tmp_file.name
            repo_config.write(tmp_file, space_around_delimiters=False)
        os.chmod(temp_name, 0o644)
        os.replace(temp_name, dest)
        temp_name = None
    except OSError as e:
        raise WriteError(f"Unable to write to {dest}: {e}", path=str(dest)) from e
    finally:
        if temp_name is not None:
            Path(temp_name).unlink(missing_ok=True)

    logger.info(f"{dest} generated ({len(repo_config.sections())} repositories)")
    return dest
