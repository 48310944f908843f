"""Read-side view providers over the cache store."""

from relcache.views.cluster import ClusterProvider
from relcache.views.image import ImageSearchProvider
from relcache.views.load_balancer import LoadBalancerProvider
from relcache.views.model import (
    Capacity,
    Cluster,
    HealthState,
    ImageResult,
    Instance,
    LoadBalancer,
    LoadBalancerServerGroup,
    ServerGroup,
)

__all__ = [
    "ClusterProvider",
    "ImageSearchProvider",
    "LoadBalancerProvider",
    "Capacity",
    "Cluster",
    "HealthState",
    "ImageResult",
    "Instance",
    "LoadBalancer",
    "LoadBalancerServerGroup",
    "ServerGroup",
]
