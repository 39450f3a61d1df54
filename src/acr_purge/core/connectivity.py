"""Registry connectivity checks."""

from ..exceptions import TransportError
from .registry_client import RegistryClient


async def check_connectivity(client: RegistryClient) -> bool:
    """Make sure the registry answers the v2 API before touching anything.

    Raises:
        TransportError: If the registry is unreachable or not a v2 registry
    """
    if not await client.check_registry_v2():
        raise TransportError(f"Registry at {client.registry_url} does not support v2 API")
    return True
