from __future__ import annotations


class ConfigError(Exception):
    """The monitor configuration document is missing or invalid."""


class ProbeRequestError(Exception):
    """A probe request could not be built from the target's method and URL."""


class ProbeTimeout(Exception):
    """A probe request did not complete within the target's timeout."""
