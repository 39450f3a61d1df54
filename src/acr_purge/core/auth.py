"""Registry naming and credential helpers."""

import aiohttp

AZURE_REGISTRY_SUFFIX = ".azurecr.io"
PREFIX_HTTPS = "https://"


def basic_auth(username: str, password: str) -> aiohttp.BasicAuth:
    """Build Basic credentials; the session encodes them on each request."""
    return aiohttp.BasicAuth(username, password)


def bearer_auth(token: str) -> str:
    """Build a Bearer Authorization header value."""
    return f"Bearer {token}"


def login_url(registry_name: str) -> str:
    """Return the login server of a registry.

    A bare registry name gets the Azure suffix; anything with a dot is
    taken to be a fully qualified name already.

    Examples:
        login_url("myregistry")  # "myregistry.azurecr.io"
        login_url("registry.example.com")  # unchanged
    """
    if "." in registry_name or registry_name.startswith(("http://", "https://")):
        return registry_name
    return registry_name + AZURE_REGISTRY_SUFFIX


def get_hostname(url: str) -> str:
    """Return the registry URL with a scheme."""
    if url.startswith(("http://", PREFIX_HTTPS)):
        return url
    return PREFIX_HTTPS + url
