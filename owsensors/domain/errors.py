"""Exceptions raised by the sensor layer and its gateways."""


class OwError(Exception):
    """Base exception for 1-Wire sensor handling."""


class CommunicationError(OwError):
    """Gateway unreachable, timed out, or returned an undecodable value."""


class ConfigurationError(OwError):
    """Invalid per-sensor settings detected while configuring channels."""


class NotConfiguredError(OwError):
    """Refresh requested before the device's channels were configured."""
