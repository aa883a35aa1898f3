class ConfigurationError(Exception):
    """A required setting (usually an API key) is missing or invalid."""


class PlacesProviderError(Exception):
    """The upstream places or geocoding API failed to answer a request."""
