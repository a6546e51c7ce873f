"""Errors raised while reading eventregister settings from the environment."""

from __future__ import annotations


class ConfigurationError(RuntimeError):
    """A setting is present but cannot be used (bad number, unknown backend...)."""


class MissingConfigurationError(ConfigurationError):
    """One or more required settings are unset or blank; the message names them all."""
