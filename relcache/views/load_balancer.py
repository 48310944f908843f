"""Load balancer view: load balancer -> server groups -> instances."""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from relcache.cache.entity import Entity
from relcache.cache.store import CacheStore
from relcache.keys import Namespace, application_key, search_pattern
from relcache.naming import Names
from relcache.views.common import (
    build_load_balancer,
    build_load_balancer_server_group,
    key_field,
    resolve_for_collection,
    resolve_relationships,
)
from relcache.views.model import LoadBalancer

logger = logging.getLogger(__name__)

APPLICATIONS = Namespace.APPLICATIONS.ns
SERVER_GROUPS = Namespace.SERVER_GROUPS.ns
INSTANCES = Namespace.INSTANCES.ns
LOAD_BALANCERS = Namespace.LOAD_BALANCERS.ns

VPC_SUFFIX = ":vpc-"


def application_matcher(key: str, application: str) -> bool:
    """True when a load balancer key's name follows the application's naming."""
    name = key_field(key, 2)
    if not name:
        return False
    return name == application or Names.parse(name).app == application


class LoadBalancerProvider:
    def __init__(self, store: CacheStore):
        self.store = store

    def get_application_load_balancers(self, application: str) -> List[LoadBalancer]:
        """Load balancers used by, or named after, an application.

        Collects the balancers referenced by the application's server
        groups (plus any VPC-suffixed variants of those keys) and every
        balancer whose name matches the application by naming convention.
        """
        all_keys = self.store.get_identifiers(LOAD_BALANCERS)
        keys = set()

        app = self.store.get(APPLICATIONS, application_key(application))
        if app is not None:
            for server_group in resolve_relationships(self.store, app, SERVER_GROUPS):
                for key in server_group.related(LOAD_BALANCERS):
                    keys.add(key)
                    keys.update(k for k in all_keys if k.startswith(key + VPC_SUFFIX))

        keys.update(k for k in all_keys if application_matcher(k, application))
        return self._translate(self.store.get_all(LOAD_BALANCERS, sorted(keys)))

    def by_account_region_name(self, account: str, region: str, name: str) -> List[Dict[str, Any]]:
        """Attribute maps of every balancer with this exact name, any VPC."""
        ids = self.store.filter_identifiers(
            LOAD_BALANCERS, search_pattern(LOAD_BALANCERS, account, region, name)
        )
        matches = sorted(i for i in ids if key_field(i, 2) == name)
        return [lb.attributes for lb in self.store.get_all(LOAD_BALANCERS, matches)]

    def list(self) -> List[LoadBalancer]:
        ids = self.store.get_identifiers(LOAD_BALANCERS)
        return self._translate(self.store.get_all(LOAD_BALANCERS, sorted(ids)))

    def _translate(self, load_balancers: List[Entity]) -> List[LoadBalancer]:
        server_groups = resolve_for_collection(self.store, load_balancers, SERVER_GROUPS)
        instances = {e.id: e for e in resolve_for_collection(self.store, server_groups, INSTANCES)}
        by_id = {sg.id: build_load_balancer_server_group(sg, instances) for sg in server_groups}
        translated = (build_load_balancer(lb, by_id) for lb in load_balancers)
        return [lb for lb in translated if lb is not None]
