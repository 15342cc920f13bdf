from __future__ import annotations

"""Entitlement content models.

This module defines Pydantic models for the JSON document embedded in
entitlement certificates, for content overrides returned by the entitlement
server, and for the entitlement certificate/key records it issues.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Placeholder expanded by the package manager at install time
RELEASEVER = "$releasever"


class Content(BaseModel):
    """One repository definition of an engineering product.

    ``enabled`` is kept as a tri-state: ``None`` means the certificate did not
    say, which consumers treat as enabled (see ``is_enabled``).
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    id: str
    type: str = ""
    name: str = ""
    label: str = ""
    vendor: str = ""
    path: str = ""
    enabled: bool | None = None
    arches: list[str] = Field(default_factory=list)
    gpg_url: str | None = None
    metadata_expire: int | None = None
    required_tags: list[str] = Field(default_factory=list)

    @field_validator("type", "name", "label", "vendor", "path", mode="before")
    @classmethod
    def null_to_empty_string(cls, v: Any) -> Any:
        """Treat JSON null as an empty string."""
        return "" if v is None else v

    @field_validator("arches", "required_tags", mode="before")
    @classmethod
    def null_to_empty_list(cls, v: Any) -> Any:
        """Treat JSON null as an empty list."""
        return [] if v is None else v

    @property
    def is_enabled(self) -> bool:
        """Enabled state with the "absent means enabled" rule applied."""
        return self.enabled is None or self.enabled

    @property
    def has_releasever(self) -> bool:
        """Whether the path contains the release version placeholder."""
        return RELEASEVER in self.path


class EngineeringProduct(BaseModel):
    """Named bundle of content definitions entitled by a subscription."""

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    name: str = ""
    version: str = ""
    architectures: list[str] = Field(default_factory=list)
    content: list[Content] = Field(default_factory=list)

    @field_validator("architectures", "content", mode="before")
    @classmethod
    def null_to_empty_list(cls, v: Any) -> Any:
        """Treat JSON null as an empty list."""
        return [] if v is None else v

    @property
    def arch_set(self) -> set[str]:
        """Architectures as a set."""
        return set(self.architectures)


class Subscription(BaseModel):
    """Subscription the entitlement was granted from."""

    sku: str = ""
    name: str = ""


class Order(BaseModel):
    """Validity window of the entitlement."""

    start: str | None = None
    end: str | None = None


class EntitlementPayload(BaseModel):
    """Inflated JSON document of the ENTITLEMENT DATA block.

    Example:
        {
            "consumer": "5e3a...",
            "subscription": {"sku": "SCA", "name": "Simple Content Access"},
            "order": {"start": "2024-01-01T00:00:00Z", "end": "2025-01-01T00:00:00Z"},
            "products": [{"id": "content-access", "content": [...]}],
            "pool": {}
        }
    """

    model_config = ConfigDict(extra="ignore")

    consumer: str = ""
    subscription: Subscription = Field(default_factory=Subscription)
    order: Order = Field(default_factory=Order)
    products: list[EngineeringProduct] = Field(default_factory=list)
    pool: dict[str, Any] = Field(default_factory=dict)

    @field_validator("products", mode="before")
    @classmethod
    def null_to_empty_list(cls, v: Any) -> Any:
        """Treat JSON null as an empty list."""
        return [] if v is None else v

    @field_validator("pool", mode="before")
    @classmethod
    def null_to_empty_dict(cls, v: Any) -> Any:
        """Treat JSON null as an empty mapping."""
        return {} if v is None else v


class ContentOverride(BaseModel):
    """Server-declared attribute replacement for one content label."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    created: str | None = None
    updated: str | None = None
    name: str
    content_label: str = Field(..., alias="contentLabel")
    value: str


class SerialInfo(BaseModel):
    """Serial record attached to an issued certificate."""

    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    serial: int
    expiration: str | None = None
    revoked: bool = False


class EntitlementCertificateKeyRecord(BaseModel):
    """Entitlement certificate and key as returned by the entitlement server."""

    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    key: str
    cert: str
    serial: SerialInfo


@dataclass(frozen=True)
class EntitlementCertificateKey:
    """Installed entitlement certificate/key pair.

    A serial is usable only when both files exist.
    """

    serial: int
    cert_path: Path
    key_path: Path
