"""Tests for repository file generation."""

import configparser
import os
from functools import partial

import pytest

from rhsmrepo.content.models import EngineeringProduct
from rhsmrepo.content.repofile import (
    RepoFileOptions,
    build_repo_config,
    join_base_url,
    write_repo_file,
)
from rhsmrepo.core.errors import WriteError
from rhsmrepo.entitlement import entitlement_cert_path, entitlement_key_path

BASEOS = "rhel-11-for-x86_64-baseos-rpms"
DEBUG = "rhel-11-for-x86_64-baseos-debug-rpms"


@pytest.fixture
def products_map(products):
    """Map of serial to parsed sample products."""
    return {1234: [EngineeringProduct.model_validate(p) for p in products]}


@pytest.fixture
def options():
    """Repository file options."""
    return RepoFileOptions(base_url="https://cdn.redhat.com", ca_cert="/etc/rhsm/ca/redhat-uep.pem")


@pytest.fixture
def resolvers(temp_dir):
    """Certificate and key path resolvers rooted at the temp directory."""
    return {
        "cert_path": partial(entitlement_cert_path, temp_dir),
        "key_path": partial(entitlement_key_path, temp_dir),
    }


def _read(path):
    parser = configparser.RawConfigParser()
    parser.read(path)
    return parser


def test_join_base_url():
    """Test joining base URL and content path."""
    assert join_base_url("https://cdn.redhat.com", "/content/dist") == "https://cdn.redhat.com/content/dist"
    assert join_base_url("https://cdn.redhat.com/", "content/dist") == "https://cdn.redhat.com/content/dist"
    assert join_base_url("https://cdn.redhat.com", "") == "https://cdn.redhat.com"


def test_build_repo_config(products_map, options, resolvers, temp_dir):
    """Test computed options of a repository section."""
    repo_config = build_repo_config(products_map, None, options, **resolvers)

    section = repo_config[BASEOS]
    assert section["name"] == "Red Hat Enterprise Linux 11 for x86_64 - BaseOS (RPMs)"
    assert section["baseurl"] == "https://cdn.redhat.com/content/dist/rhel11/$releasever/x86_64/baseos/os"
    assert section["enabled"] == "1"
    assert section["enabled_metadata"] == "1"
    assert section["gpgcheck"] == "1"
    assert section["gpgkey"] == "file:///etc/pki/rpm-gpg/RPM-GPG-KEY-redhat-release"
    assert section["sslverify"] == "1"
    assert section["sslcacert"] == "/etc/rhsm/ca/redhat-uep.pem"
    assert section["sslclientcert"] == str(temp_dir / "1234.pem")
    assert section["sslclientkey"] == str(temp_dir / "1234-key.pem")
    assert section["metadata_expire"] == "86400"
    assert section["arches"] == "x86_64"
    assert section["sslverifystatus"] == "1"


def test_build_repo_config_section_order(products_map, options, resolvers):
    """Test that sections follow content order."""
    repo_config = build_repo_config(products_map, None, options, **resolvers)
    assert repo_config.sections() == [
        BASEOS,
        "rhel-11-for-x86_64-appstream-rpms",
        DEBUG,
    ]


def test_disabled_content_without_gpg(products_map, options, resolvers):
    """Test disabled content with empty gpg URL."""
    section = build_repo_config(products_map, None, options, **resolvers)[DEBUG]

    assert section["enabled"] == "0"
    assert section["enabled_metadata"] == "0"
    assert section["gpgcheck"] == "0"
    assert "gpgkey" not in section
    assert section["metadata_expire"] == "0"


def test_overrides_applied_after_computed_options(products_map, options, resolvers):
    """Test that overrides replace and extend computed options."""
    overrides = {DEBUG: {"enabled": "1", "sslverify": "0", "module_hotfixes": "1"}}

    repo_config = build_repo_config(products_map, overrides, options, **resolvers)

    assert repo_config[DEBUG]["enabled"] == "1"
    assert repo_config[DEBUG]["sslverify"] == "0"
    assert repo_config[DEBUG]["module_hotfixes"] == "1"
    assert repo_config[BASEOS]["sslverify"] == "1"


def test_arches_joined_with_separator(options, resolvers):
    """Test that multiple arches are comma separated."""
    product = EngineeringProduct.model_validate(
        {"id": "1", "content": [{"id": "c", "label": "multi", "name": "Multi", "arches": ["x86_64", "aarch64"]}]}
    )

    repo_config = build_repo_config({1: [product]}, None, options, **resolvers)
    assert repo_config["multi"]["arches"] == "x86_64,aarch64"

    legacy = RepoFileOptions(base_url=options.base_url, ca_cert=options.ca_cert, arch_separator="")
    repo_config = build_repo_config({1: [product]}, None, legacy, **resolvers)
    assert repo_config["multi"]["arches"] == "x86_64aarch64"


def test_no_arches_key_without_arches(options, resolvers):
    """Test that arches is omitted for content without arches."""
    product = EngineeringProduct.model_validate({"id": "1", "content": [{"id": "c", "label": "noarch"}]})
    assert "arches" not in build_repo_config({1: [product]}, None, options, **resolvers)["noarch"]


def test_sections_keyed_by_name(options, resolvers):
    """Test that section_key="name" keys sections by content name."""
    product = EngineeringProduct.model_validate(
        {
            "id": "1",
            "content": [
                {"id": "a", "label": "label-a", "name": "Same name"},
                {"id": "b", "label": "label-b", "name": "Same name"},
            ],
        }
    )

    by_label = build_repo_config({1: [product]}, None, options, **resolvers)
    assert by_label.sections() == ["label-a", "label-b"]

    by_name = RepoFileOptions(base_url=options.base_url, ca_cert=options.ca_cert, section_key="name")
    repo_config = build_repo_config({1: [product]}, None, by_name, **resolvers)
    assert repo_config.sections() == ["Same name"]


def test_default_section_name_skipped(options, resolvers, temp_dir, caplog):
    """Test that content named like the INI default section is skipped."""
    product = EngineeringProduct.model_validate(
        {"id": "1", "content": [{"id": "d", "label": "DEFAULT"}, {"id": "b", "label": "baseos"}]}
    )

    path = write_repo_file({1: [product]}, None, options, dest=temp_dir / "redhat.repo", **resolvers)

    assert _read(path).sections() == ["baseos"]
    assert "'DEFAULT' cannot be used as a repository name" in caplog.text


def test_serial_order(options, resolvers, temp_dir):
    """Test that sections follow serial order regardless of map order."""
    first = EngineeringProduct.model_validate({"id": "1", "content": [{"id": "a", "label": "a"}]})
    second = EngineeringProduct.model_validate({"id": "2", "content": [{"id": "b", "label": "b"}]})

    repo_config = build_repo_config({20: [second], 10: [first]}, None, options, **resolvers)

    assert repo_config.sections() == ["a", "b"]
    assert repo_config["a"]["sslclientcert"] == str(temp_dir / "10.pem")


def test_write_repo_file(products_map, options, resolvers, temp_dir):
    """Test writing the repository file."""
    dest = temp_dir / "yum.repos.d" / "redhat.repo"

    result = write_repo_file(products_map, None, options, dest=dest, **resolvers)

    assert result == dest
    content = dest.read_text()
    assert f"[{BASEOS}]\n" in content
    assert "sslverify=1\n" in content
    assert "sslverify = 1" not in content
    assert _read(dest).sections() == build_repo_config(products_map, None, options, **resolvers).sections()
    assert oct(os.stat(dest).st_mode & 0o777) == oct(0o644)
    assert [p.name for p in dest.parent.iterdir()] == ["redhat.repo"]


def test_write_repo_file_replaces_existing(products_map, options, resolvers, temp_dir):
    """Test that the file is replaced as a whole."""
    dest = temp_dir / "redhat.repo"
    dest.write_text("[stale]\nname=stale\n")

    write_repo_file(products_map, None, options, dest=dest, **resolvers)

    assert "stale" not in _read(dest).sections()


def test_write_repo_file_no_products(options, resolvers, temp_dir):
    """Test that no products yield an empty, valid file."""
    dest = temp_dir / "redhat.repo"

    write_repo_file({}, None, options, dest=dest, **resolvers)

    assert dest.exists()
    assert dest.read_text() == ""
    assert _read(dest).sections() == []


def test_write_repo_file_unwritable(products_map, options, resolvers, temp_dir):
    """Test that an unwritable destination raises WriteError."""
    blocker = temp_dir / "not-a-directory"
    blocker.write_text("")

    with pytest.raises(WriteError) as exc_info:
        write_repo_file(products_map, None, options, dest=blocker / "redhat.repo", **resolvers)

    assert exc_info.value.path == str(blocker / "redhat.repo")
