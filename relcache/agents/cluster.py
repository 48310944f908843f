"""Cluster caching agent.

Walks every scaling group of one account/region and derives the
application, cluster, server group, launch config, instance and load
balancer entities it implies.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from relcache.agents.base import CachingAgent
from relcache.agents.merge import CacheResultBuilder
from relcache.cache.result import Authority, CacheResult
from relcache.constants import DEFAULT_AUX_FETCH_WORKERS, PROVIDER_ID
from relcache.errors import InvalidKeyError, TransientFetchError
from relcache.keys import (
    Namespace,
    application_key,
    cluster_key,
    instance_key,
    launch_config_key,
    load_balancer_key,
    server_group_key,
)
from relcache.naming import Names
from relcache.providers.base import Record, ScalingGroupFetcher

logger = logging.getLogger(__name__)

APPLICATIONS = Namespace.APPLICATIONS.ns
CLUSTERS = Namespace.CLUSTERS.ns
SERVER_GROUPS = Namespace.SERVER_GROUPS.ns
INSTANCES = Namespace.INSTANCES.ns
LOAD_BALANCERS = Namespace.LOAD_BALANCERS.ns
LAUNCH_CONFIGS = Namespace.LAUNCH_CONFIGS.ns


def log_transient(agent_type: str, exc: TransientFetchError) -> None:
    if exc.not_found:
        logger.info("%s: %s -> NotFound", agent_type, exc.resource_id)
    else:
        logger.warning("%s: %s", agent_type, exc)


@dataclass
class ServerGroupData:
    """One scaling group plus whatever auxiliary data could be fetched.

    Building it derives every key the group implies, so a record with an
    unusable name fails here before anything is merged.
    """

    group: Record
    account: str
    region: str
    scaling_configuration: Optional[Record] = None
    load_balancers: List[Record] = field(default_factory=list)
    instances: List[Record] = field(default_factory=list)
    instance_details: Dict[str, Record] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.names = Names.parse(self.group.get("scalingGroupName") or "")
        self.application = application_key(self.names.app)
        self.cluster = cluster_key(self.names.cluster, self.names.app, self.account)
        self.server_group = server_group_key(self.names.group, self.account, self.region)

        self.launch_config: Optional[str] = None
        self.launch_config_name: Optional[str] = None
        if self.scaling_configuration:
            self.launch_config_name = self.scaling_configuration.get(
                "scalingConfigurationName"
            ) or self.scaling_configuration.get("scalingConfigurationId")
            if self.launch_config_name:
                self.launch_config = launch_config_key(self.launch_config_name, self.account, self.region)

        self.instance_keys = {
            instance["instanceId"]: instance_key(instance["instanceId"], self.account, self.region)
            for instance in self.instances
            if instance.get("instanceId")
        }
        self.load_balancer_keys = {}
        for lb in self.load_balancers:
            name = lb.get("loadBalancerId") or lb.get("loadBalancerName")
            self.load_balancer_keys[name] = load_balancer_key(name, self.account, self.region, lb.get("vpcId"))


def cache_application(data: ServerGroupData, builder: CacheResultBuilder) -> None:
    builder.merge(
        APPLICATIONS,
        data.application,
        {"name": data.names.app},
        {
            CLUSTERS: [data.cluster],
            SERVER_GROUPS: [data.server_group],
            LOAD_BALANCERS: data.load_balancer_keys.values(),
        },
    )


def cache_cluster(data: ServerGroupData, builder: CacheResultBuilder) -> None:
    builder.merge(
        CLUSTERS,
        data.cluster,
        {"name": data.names.cluster, "application": data.names.app, "account": data.account},
        {
            APPLICATIONS: [data.application],
            SERVER_GROUPS: [data.server_group],
            LOAD_BALANCERS: data.load_balancer_keys.values(),
        },
    )


def cache_server_group(data: ServerGroupData, builder: CacheResultBuilder) -> None:
    attributes = {
        "name": data.names.group,
        "application": data.names.app,
        "cluster": data.names.cluster,
        "stack": data.names.stack,
        "detail": data.names.detail,
        "account": data.account,
        "region": data.region,
        "provider": PROVIDER_ID,
        "scalingGroup": data.group,
        "scalingConfiguration": data.scaling_configuration or {},
        "launchConfigName": data.launch_config_name,
        "instances": data.instances,
        "loadBalancers": data.load_balancers,
    }
    relationships = {
        APPLICATIONS: [data.application],
        CLUSTERS: [data.cluster],
        LOAD_BALANCERS: data.load_balancer_keys.values(),
        INSTANCES: data.instance_keys.values(),
    }
    if data.launch_config:
        relationships[LAUNCH_CONFIGS] = [data.launch_config]
    builder.merge(SERVER_GROUPS, data.server_group, attributes, relationships)


def cache_launch_config(data: ServerGroupData, builder: CacheResultBuilder) -> None:
    if not data.launch_config:
        return
    builder.merge(
        LAUNCH_CONFIGS,
        data.launch_config,
        data.scaling_configuration,
        {SERVER_GROUPS: [data.server_group]},
    )


def cache_instances(data: ServerGroupData, builder: CacheResultBuilder) -> None:
    for instance_id, key in data.instance_keys.items():
        attributes = data.instance_details.get(instance_id) or {"instanceId": instance_id}
        builder.merge(INSTANCES, key, attributes, {SERVER_GROUPS: [data.server_group]})


def cache_load_balancers(data: ServerGroupData, builder: CacheResultBuilder) -> None:
    for lb in data.load_balancers:
        key = data.load_balancer_keys[lb.get("loadBalancerId") or lb.get("loadBalancerName")]
        builder.merge(LOAD_BALANCERS, key, lb, {SERVER_GROUPS: [data.server_group]})


HANDLERS = (
    cache_application,
    cache_cluster,
    cache_server_group,
    cache_launch_config,
    cache_instances,
    cache_load_balancers,
)


class ClusterCachingAgent(CachingAgent):
    """Caches the application/cluster/server group hierarchy of a region."""

    provided_data_types = (
        Authority.AUTHORITATIVE.for_type(APPLICATIONS),
        Authority.AUTHORITATIVE.for_type(CLUSTERS),
        Authority.AUTHORITATIVE.for_type(SERVER_GROUPS),
        Authority.INFORMATIVE.for_type(LOAD_BALANCERS),
        Authority.INFORMATIVE.for_type(LAUNCH_CONFIGS),
        Authority.INFORMATIVE.for_type(INSTANCES),
    )

    def __init__(
        self,
        fetcher: ScalingGroupFetcher,
        account: str,
        region: str,
        aux_fetch_workers: int = DEFAULT_AUX_FETCH_WORKERS,
    ):
        super().__init__(account, region)
        self.fetcher = fetcher
        self.aux_fetch_workers = aux_fetch_workers

    def load_data(self) -> CacheResult:
        # Materialize the listing first so a paging failure aborts before any merge.
        groups = list(self.fetcher.iter_scaling_groups())
        logger.info("%s: caching %d scaling groups", self.agent_type, len(groups))

        builder = CacheResultBuilder()
        with ThreadPoolExecutor(max_workers=self.aux_fetch_workers) as pool:
            for group in groups:
                try:
                    data = self._fetch_group(group, pool)
                except (InvalidKeyError, ValueError) as e:
                    logger.warning(
                        "%s: skipping scaling group %r: %s",
                        self.agent_type,
                        group.get("scalingGroupName"),
                        e,
                    )
                    continue
                for handler in HANDLERS:
                    handler(data, builder)
        return builder.build(self.provided_data_types)

    def _fetch_group(self, group: Record, pool: ThreadPoolExecutor) -> ServerGroupData:
        scaling_configuration = None
        try:
            scaling_configuration = self.fetcher.describe_scaling_configuration(group)
        except TransientFetchError as e:
            log_transient(self.agent_type, e)

        # map() yields in submission order, keeping merges in listing order
        lb_ids = [lb_id for lb_id in group.get("loadBalancerIds") or [] if lb_id]
        load_balancers = [lb for lb in pool.map(self._describe_load_balancer, lb_ids) if lb]

        instances = [dict(i) for i in group.get("instances") or []]
        details: Dict[str, Record] = {}
        instance_ids = [i["instanceId"] for i in instances if i.get("instanceId")]
        if instance_ids:
            try:
                details = self.fetcher.describe_instances(instance_ids)
            except TransientFetchError as e:
                log_transient(self.agent_type, e)
        for instance in instances:
            detail = details.get(instance.get("instanceId"))
            if detail and not instance.get("zoneId"):
                instance["zoneId"] = detail.get("zoneId")

        return ServerGroupData(
            group=group,
            account=self.account,
            region=self.region,
            scaling_configuration=scaling_configuration,
            load_balancers=load_balancers,
            instances=instances,
            instance_details=details,
        )

    def _describe_load_balancer(self, load_balancer_id: str) -> Optional[Record]:
        try:
            return self.fetcher.describe_load_balancer(load_balancer_id)
        except TransientFetchError as e:
            log_transient(self.agent_type, e)
            return None
