"""Cluster view: application -> cluster -> server group -> instance."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set

from pydantic import ValidationError

from relcache.cache.entity import Entity
from relcache.cache.store import CacheStore
from relcache.keys import Namespace, application_key, cluster_key, search_pattern, server_group_key
from relcache.views.common import build_load_balancer, build_server_group, key_field, resolve_relationships
from relcache.views.model import Cluster, ServerGroup

logger = logging.getLogger(__name__)

APPLICATIONS = Namespace.APPLICATIONS.ns
CLUSTERS = Namespace.CLUSTERS.ns
SERVER_GROUPS = Namespace.SERVER_GROUPS.ns
LOAD_BALANCERS = Namespace.LOAD_BALANCERS.ns


class ClusterProvider:
    """Reads clusters and server groups out of the cache store."""

    def __init__(self, store: CacheStore):
        self.store = store

    def get_cluster_details(self, application: str) -> Optional[Dict[str, List[Cluster]]]:
        """All clusters of an application.

        Returns:
            ``{application: [Cluster, ...]}``, or None when the application
            is not cached
        """
        app = self.store.get(APPLICATIONS, application_key(application))
        if app is None:
            return None
        clusters = resolve_relationships(self.store, app, CLUSTERS)
        return {application: self._translate_clusters(clusters)}

    def get_clusters(self, application: str, account: str) -> List[Cluster]:
        ids = self.store.filter_identifiers(CLUSTERS, search_pattern(CLUSTERS, account, application))
        return self._translate_clusters(self.store.get_all(CLUSTERS, sorted(ids)))

    def get_cluster(self, application: str, account: str, name: str) -> Optional[Cluster]:
        cluster = self.store.get(CLUSTERS, cluster_key(name, application, account))
        if cluster is None:
            return None
        return self._translate_clusters([cluster])[0]

    def get_server_group(self, account: str, region: str, name: str) -> Optional[ServerGroup]:
        entity = self.store.get(SERVER_GROUPS, self.build_server_group_identifier(account, region, name))
        if entity is None:
            return None
        return self._build_server_group(entity)

    def get_server_group_identifiers(self, account: str, region: str) -> Set[str]:
        return self.store.filter_identifiers(SERVER_GROUPS, search_pattern(SERVER_GROUPS, account, region))

    def build_server_group_identifier(self, account: str, region: str, name: str) -> str:
        return server_group_key(name, account, region)

    def _build_server_group(self, entity: Entity) -> Optional[ServerGroup]:
        try:
            return build_server_group(entity)
        except ValidationError as e:
            logger.warning("Dropping server group %s with unusable attributes: %s", entity.id, e)
            return None

    def _translate_clusters(self, clusters: Iterable[Entity]) -> List[Cluster]:
        translated = []
        for cluster in clusters:
            server_groups = [
                sg
                for sg in map(self._build_server_group, resolve_relationships(self.store, cluster, SERVER_GROUPS))
                if sg is not None
            ]
            load_balancers = [
                lb
                for lb in map(build_load_balancer, resolve_relationships(self.store, cluster, LOAD_BALANCERS))
                if lb is not None
            ]
            translated.append(
                Cluster(
                    name=cluster.attributes.get("name") or key_field(cluster.id),
                    account=cluster.attributes.get("account") or key_field(cluster.id, 0),
                    application=cluster.attributes.get("application") or key_field(cluster.id, 1),
                    server_groups=server_groups,
                    load_balancers=load_balancers,
                )
            )
        return translated
