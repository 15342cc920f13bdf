"""
Configuration management for rhsmrepo.

This module provides Pydantic models for the sections of rhsm.conf and a
loader that reads either the classic INI file or an equivalent YAML document.

The default and allowed value of every supported option are kept in a static
table (FIELD_SCHEMA). The models take their defaults from it, and the typed
helpers below use it to answer "is this the default?" and "is this value
allowed?" without inspecting the models at runtime.
"""

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from rhsmrepo.core.errors import ConfigurationError

DEFAULT_CONFIG_PATH = Path("/etc/rhsm/rhsm.conf")
DEFAULT_REPO_FILE_PATH = "/etc/yum.repos.d/redhat.repo"
DEFAULT_OS_RELEASE_PATH = "/etc/os-release"

FieldKind = Literal["str", "int", "bool"]


@dataclass(frozen=True)
class FieldSpec:
    """Declarative description of one configuration option."""

    kind: FieldKind
    default: Any
    allowed: Optional[Tuple[str, ...]] = None


FIELD_SCHEMA: Dict[Tuple[str, str], FieldSpec] = {
    # [server]
    ("server", "hostname"): FieldSpec("str", "subscription.rhsm.redhat.com"),
    ("server", "prefix"): FieldSpec("str", "/subscription"),
    ("server", "port"): FieldSpec("int", 443),
    ("server", "insecure"): FieldSpec("bool", False),
    ("server", "server_timeout"): FieldSpec("int", 180),
    ("server", "proxy_hostname"): FieldSpec("str", ""),
    ("server", "proxy_scheme"): FieldSpec("str", "http", ("http", "https")),
    ("server", "proxy_port"): FieldSpec("int", 3128),
    ("server", "proxy_user"): FieldSpec("str", ""),
    ("server", "proxy_password"): FieldSpec("str", ""),
    ("server", "no_proxy"): FieldSpec("str", ""),
    # [rhsm]
    ("rhsm", "ca_cert_dir"): FieldSpec("str", "/etc/rhsm/ca/"),
    ("rhsm", "consumer_cert_dir"): FieldSpec("str", "/etc/pki/consumer"),
    ("rhsm", "entitlement_cert_dir"): FieldSpec("str", "/etc/pki/entitlement"),
    ("rhsm", "product_cert_dir"): FieldSpec("str", "/etc/pki/product"),
    ("rhsm", "default_product_cert_dir"): FieldSpec("str", "/etc/pki/product-default"),
    ("rhsm", "baseurl"): FieldSpec("str", "https://cdn.redhat.com"),
    ("rhsm", "repo_ca_cert"): FieldSpec("str", "/etc/rhsm/ca/redhat-uep.pem"),
    ("rhsm", "report_package_profile"): FieldSpec("bool", True),
    ("rhsm", "manage_repos"): FieldSpec("bool", True),
    ("rhsm", "auto_enable_yum_plugins"): FieldSpec("bool", True),
    ("rhsm", "package_profile_on_trans"): FieldSpec("bool", False),
    ("rhsm", "repo_file_path"): FieldSpec("str", DEFAULT_REPO_FILE_PATH),
    ("rhsm", "os_release_path"): FieldSpec("str", DEFAULT_OS_RELEASE_PATH),
    # [rhsmcertd]
    ("rhsmcertd", "auto_registration"): FieldSpec("bool", False),
    ("rhsmcertd", "auto_registration_interval"): FieldSpec("int", 60),
    ("rhsmcertd", "splay"): FieldSpec("bool", True),
    # [logging]
    ("logging", "default_log_level"): FieldSpec(
        "str", "INFO", ("ERROR", "WARN", "INFO", "DEBUG")
    ),
}


def _default(section: str, name: str) -> Any:
    return FIELD_SCHEMA[(section, name)].default


def _spec(section: str, name: str) -> FieldSpec:
    try:
        return FIELD_SCHEMA[(section, name)]
    except KeyError:
        raise KeyError(f"Unknown configuration option: [{section}] {name}") from None


# Coerce raw option values the same way the section models do
_ADAPTERS: Dict[str, TypeAdapter] = {
    "str": TypeAdapter(str, config=ConfigDict(coerce_numbers_to_str=True)),
    "int": TypeAdapter(int),
    "bool": TypeAdapter(bool),
}


def coerce_value(kind: FieldKind, value: Any) -> Any:
    """Coerce an option value (typed or as read from the file) to its kind.

    Raises:
        ValueError: If value cannot be coerced
    """
    return _ADAPTERS[kind].validate_python(value)


def is_default_value(section: str, name: str, value: Any) -> bool:
    """Tell whether value equals the default of the given option.

    Args:
        section: INI section name (e.g., "server")
        name: Option name (e.g., "port")
        value: Value to compare, either typed or as read from the file

    Returns:
        True if value is the default

    Raises:
        KeyError: If the option is unknown
        ValueError: If value cannot be parsed as the option's kind
    """
    spec = _spec(section, name)
    return coerce_value(spec.kind, value) == spec.default


def is_value_allowed(section: str, name: str, value: Any) -> bool:
    """Tell whether value is allowed for the given option.

    Options without an allowed-value set accept any value. Only string
    options carry allowed-value sets.
    """
    spec = _spec(section, name)
    if spec.allowed is None:
        return True
    if spec.kind != "str":
        raise ValueError(f"Allowed values are not supported for {spec.kind} option {name}")
    return coerce_value("str", value) in spec.allowed


class ServerConfig(BaseModel):
    """Section [server]: connection to the entitlement server."""

    hostname: str = _default("server", "hostname")
    prefix: str = _default("server", "prefix")
    port: int = _default("server", "port")
    insecure: bool = _default("server", "insecure")
    server_timeout: int = _default("server", "server_timeout")

    # Proxy settings
    proxy_hostname: str = _default("server", "proxy_hostname")
    proxy_scheme: str = _default("server", "proxy_scheme")
    proxy_port: int = _default("server", "proxy_port")
    proxy_user: str = _default("server", "proxy_user")
    proxy_password: str = _default("server", "proxy_password")

    # Comma separated list of hosts that bypass the proxy
    no_proxy: str = _default("server", "no_proxy")

    @field_validator("proxy_scheme")
    @classmethod
    def validate_proxy_scheme(cls, v: str) -> str:
        """Validate proxy scheme."""
        if not is_value_allowed("server", "proxy_scheme", v):
            allowed = list(FIELD_SCHEMA[("server", "proxy_scheme")].allowed or ())
            raise ValueError(f"Invalid proxy scheme: {v}. Must be one of {allowed}")
        return v

    @property
    def base_url(self) -> str:
        """URL of the entitlement server API."""
        prefix = self.prefix if self.prefix.startswith("/") else "/" + self.prefix
        return f"https://{self.hostname}:{self.port}{prefix.rstrip('/')}/"

    @property
    def proxy_url(self) -> Optional[str]:
        """Proxy URL, or None if no proxy is configured."""
        if not self.proxy_hostname:
            return None
        credentials = ""
        if self.proxy_user:
            credentials = self.proxy_user
            if self.proxy_password:
                credentials += f":{self.proxy_password}"
            credentials += "@"
        return f"{self.proxy_scheme}://{credentials}{self.proxy_hostname}:{self.proxy_port}"


class RhsmSectionConfig(BaseModel):
    """Section [rhsm]: certificate directories and repository settings."""

    # Directories used for certificates
    ca_cert_dir: str = _default("rhsm", "ca_cert_dir")
    consumer_cert_dir: str = _default("rhsm", "consumer_cert_dir")
    entitlement_cert_dir: str = _default("rhsm", "entitlement_cert_dir")
    product_cert_dir: str = _default("rhsm", "product_cert_dir")
    default_product_cert_dir: str = _default("rhsm", "default_product_cert_dir")

    # Repository related options
    baseurl: str = _default("rhsm", "baseurl")
    repo_ca_cert: str = _default("rhsm", "repo_ca_cert")
    report_package_profile: bool = _default("rhsm", "report_package_profile")
    manage_repos: bool = _default("rhsm", "manage_repos")

    # DNF plugins
    auto_enable_yum_plugins: bool = _default("rhsm", "auto_enable_yum_plugins")
    package_profile_on_trans: bool = _default("rhsm", "package_profile_on_trans")

    # Files managed outside of rhsm.conf
    repo_file_path: str = _default("rhsm", "repo_file_path")
    os_release_path: str = _default("rhsm", "os_release_path")

    def get_entitlement_cert_dir(self) -> Path:
        """Get entitlement certificate directory."""
        return Path(self.entitlement_cert_dir)

    def get_consumer_cert_path(self) -> Path:
        """Get consumer certificate path."""
        return Path(self.consumer_cert_dir) / "cert.pem"

    def get_consumer_key_path(self) -> Path:
        """Get consumer key path."""
        return Path(self.consumer_cert_dir) / "key.pem"

    def get_product_cert_dirs(self) -> list[Path]:
        """Get product certificate directories (installed first, then defaults)."""
        return [Path(self.product_cert_dir), Path(self.default_product_cert_dir)]


class CertDaemonConfig(BaseModel):
    """Section [rhsmcertd]."""

    auto_registration: bool = _default("rhsmcertd", "auto_registration")
    auto_registration_interval: int = _default("rhsmcertd", "auto_registration_interval")
    splay: bool = _default("rhsmcertd", "splay")


class LoggingConfig(BaseModel):
    """Section [logging]."""

    default_log_level: str = _default("logging", "default_log_level")

    @field_validator("default_log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        v = v.upper()
        if not is_value_allowed("logging", "default_log_level", v):
            allowed = list(FIELD_SCHEMA[("logging", "default_log_level")].allowed or ())
            raise ValueError(f"Invalid log level: {v}. Must be one of {allowed}")
        return v


class RhsmConfig(BaseModel):
    """Complete rhsm.conf configuration."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    rhsm: RhsmSectionConfig = Field(default_factory=RhsmSectionConfig)
    rhsmcertd: CertDaemonConfig = Field(default_factory=CertDaemonConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    # Path the configuration was loaded from (None = defaults)
    file_path: Optional[str] = None


_SECTIONS = ("server", "rhsm", "rhsmcertd", "logging")


class ConfigLoader:
    """Configuration file loader for rhsm.conf (INI) or its YAML equivalent."""

    def __init__(self, config_path: Path):
        """Initialize config loader.

        Args:
            config_path: Path to configuration file
        """
        self.config_path = config_path

    def load(self) -> RhsmConfig:
        """Load configuration from file.

        Returns:
            RhsmConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigurationError: If config cannot be parsed or is invalid
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        if self.config_path.suffix in (".yaml", ".yml"):
            sections = self._read_yaml()
        else:
            sections = self._read_ini()

        try:
            return RhsmConfig(**sections, file_path=str(self.config_path))
        except ValidationError as e:
            raise ConfigurationError(
                f"Configuration validation error in {self.config_path}:\n{e}"
            ) from e

    def _read_ini(self) -> Dict[str, Dict[str, str]]:
        """Read INI sections, keeping only known options with a value."""
        parser = configparser.ConfigParser()
        try:
            with open(self.config_path) as f:
                parser.read_file(f)
        except configparser.Error as e:
            raise ConfigurationError(f"INI syntax error in {self.config_path}:\n{e}") from e

        sections: Dict[str, Dict[str, str]] = {}
        for section in _SECTIONS:
            if not parser.has_section(section):
                continue
            values = {}
            for name in parser.options(section):
                if (section, name) not in FIELD_SCHEMA:
                    continue
                try:
                    raw = parser.get(section, name)
                except configparser.InterpolationError as e:
                    raise ConfigurationError(
                        f"Unable to interpolate [{section}] {name} in {self.config_path}: {e}"
                    ) from e
                # Empty values fall back to defaults
                if raw.strip() == "":
                    continue
                values[name] = raw.strip()
            sections[section] = values
        return sections

    def _read_yaml(self) -> Dict[str, Dict[str, Any]]:
        """Read YAML mapping of section name to options."""
        try:
            with open(self.config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"YAML syntax error in {self.config_path}:\n{e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Expected a mapping of sections in {self.config_path}")

        sections: Dict[str, Dict[str, Any]] = {}
        for section in _SECTIONS:
            values = data.get(section) or {}
            if not isinstance(values, dict):
                raise ConfigurationError(
                    f"Section '{section}' in {self.config_path} must be a mapping"
                )
            sections[section] = {
                name: value
                for name, value in values.items()
                if (section, name) in FIELD_SCHEMA and value is not None
            }
        return sections


def load_config(config_path: Optional[Path] = None) -> RhsmConfig:
    """Load configuration from file.

    Priority:
    1. Explicit config_path parameter
    2. RHSM_CONFIG environment variable
    3. Default location (/etc/rhsm/rhsm.conf)

    Args:
        config_path: Path to config file. If None, tries RHSM_CONFIG env or default location.

    Returns:
        RhsmConfig instance

    Raises:
        FileNotFoundError: If an explicitly requested config file is missing
    """
    if config_path:
        path = Path(config_path)
    elif os.environ.get("RHSM_CONFIG"):
        path = Path(os.environ["RHSM_CONFIG"])
    else:
        path = DEFAULT_CONFIG_PATH
        if not path.exists():
            # Return default config if no file found
            return RhsmConfig()

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    return ConfigLoader(path).load()
