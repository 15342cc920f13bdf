"""Entitlement content: certificate decoding, parsing, overrides and repo file generation."""
