"""boto3-backed fetcher for one AWS account and region.

Responses are reshaped into the provider-neutral records the caching
agents consume. Failures of primary listings become ``AgentFetchFailure``;
failures of single auxiliary lookups become ``TransientFetchError``.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, Iterable, Iterator, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from relcache.constants import (
    ACTIVE_LIFECYCLE_STATE,
    DEFAULT_PAGE_SIZE,
    DISABLING_PROCESSES,
    INACTIVE_LIFECYCLE_STATE,
    PROVIDER_ID,
)
from relcache.errors import AgentFetchFailure, TransientFetchError
from relcache.parsing import format_timestamp
from relcache.providers.base import Record

logger = logging.getLogger(__name__)


def error_code(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "Unknown")
    return type(exc).__name__


def get_tags_dict(tags_list: Optional[List[Dict[str, str]]]) -> Dict[str, str]:
    """Convert AWS tags list format to dictionary.

    Example:
        >>> get_tags_dict([{"Key": "Environment", "Value": "prod"}])
        {'Environment': 'prod'}
    """
    if not tags_list:
        return {}
    return {tag.get("Key", ""): tag.get("Value", "") for tag in tags_list if tag.get("Key")}


def _timestamp(value: Any) -> Any:
    return format_timestamp(value) if isinstance(value, datetime) else value


def scaling_group_record(group: Dict[str, Any]) -> Record:
    suspended = {p.get("ProcessName") for p in group.get("SuspendedProcesses", [])}
    out_of_service = bool(group.get("Status")) or bool(suspended & set(DISABLING_PROCESSES))
    template = group.get("LaunchTemplate") or (
        (group.get("MixedInstancesPolicy") or {})
        .get("LaunchTemplate", {})
        .get("LaunchTemplateSpecification")
    )
    launch_config = group.get("LaunchConfigurationName")
    return {
        "scalingGroupId": group.get("AutoScalingGroupARN"),
        "scalingGroupName": group["AutoScalingGroupName"],
        "activeScalingConfigurationId": launch_config or (template or {}).get("LaunchTemplateId"),
        "launchConfigurationName": launch_config,
        "launchTemplate": template,
        "lifecycleState": INACTIVE_LIFECYCLE_STATE if out_of_service else ACTIVE_LIFECYCLE_STATE,
        "minSize": group.get("MinSize"),
        "maxSize": group.get("MaxSize"),
        "desiredCapacity": group.get("DesiredCapacity"),
        "creationTime": _timestamp(group.get("CreatedTime")),
        "loadBalancerIds": list(group.get("LoadBalancerNames", [])),
        "targetGroupArns": list(group.get("TargetGroupARNs", [])),
        "availabilityZones": list(group.get("AvailabilityZones", [])),
        "vpcZoneIdentifier": group.get("VPCZoneIdentifier"),
        "suspendedProcesses": sorted(p for p in suspended if p),
        "tags": get_tags_dict(group.get("Tags")),
        "instances": [
            {
                "instanceId": inst.get("InstanceId"),
                "healthStatus": inst.get("HealthStatus"),
                "lifecycleState": inst.get("LifecycleState"),
                "zoneId": inst.get("AvailabilityZone"),
                "instanceType": inst.get("InstanceType"),
            }
            for inst in group.get("Instances", [])
        ],
    }


def instance_record(instance: Dict[str, Any], region: str) -> Record:
    return {
        "instanceId": instance.get("InstanceId"),
        "instanceType": instance.get("InstanceType"),
        "zoneId": (instance.get("Placement") or {}).get("AvailabilityZone"),
        "regionId": region,
        "state": (instance.get("State") or {}).get("Name"),
        "privateIpAddress": instance.get("PrivateIpAddress"),
        "publicIpAddress": instance.get("PublicIpAddress"),
        "imageId": instance.get("ImageId"),
        "launchTime": _timestamp(instance.get("LaunchTime")),
        "vpcId": instance.get("VpcId"),
        "subnetId": instance.get("SubnetId"),
        "tags": get_tags_dict(instance.get("Tags")),
    }


def load_balancer_record(description: Dict[str, Any], region: str) -> Record:
    name = description.get("LoadBalancerName")
    return {
        "loadBalancerId": name,
        "loadBalancerName": name,
        "regionIdAlias": region,
        "vpcId": description.get("VPCId"),
        "dnsName": description.get("DNSName"),
        "scheme": description.get("Scheme"),
        "createdTime": _timestamp(description.get("CreatedTime")),
        "availabilityZones": list(description.get("AvailabilityZones", [])),
        "instances": [i.get("InstanceId") for i in description.get("Instances", []) if i.get("InstanceId")],
        "listeners": [
            {
                "protocol": (d.get("Listener") or {}).get("Protocol"),
                "loadBalancerPort": (d.get("Listener") or {}).get("LoadBalancerPort"),
                "instancePort": (d.get("Listener") or {}).get("InstancePort"),
            }
            for d in description.get("ListenerDescriptions", [])
        ],
    }


def image_record(image: Dict[str, Any], owner: str) -> Record:
    return {
        "imageId": image.get("ImageId"),
        "imageName": image.get("Name"),
        "imageOwnerAlias": image.get("ImageOwnerAlias") or owner,
        "ownerId": image.get("OwnerId"),
        "architecture": image.get("Architecture"),
        "platform": image.get("PlatformDetails"),
        "status": image.get("State"),
        "creationTime": _timestamp(image.get("CreationDate")),
        "description": image.get("Description"),
        "isPublic": image.get("Public"),
        "tags": get_tags_dict(image.get("Tags")),
    }


class AwsFetcher:
    """Fetches Auto Scaling, EC2 and classic ELB state for one region.

    Implements every fetcher protocol in ``relcache.providers.base``.
    boto3 clients are thread-safe, so auxiliary lookups may be issued
    from worker threads.
    """

    def __init__(
        self,
        session: boto3.Session,
        account: str,
        region: str,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self.account = account
        self.region = region
        self.page_size = page_size
        self._autoscaling = session.client("autoscaling", region_name=region)
        self._ec2 = session.client("ec2", region_name=region)
        self._elb = session.client("elb", region_name=region)

    @property
    def name(self) -> str:
        return f"{PROVIDER_ID}/{self.account}/{self.region}"

    def _paginate(self, client: Any, method: str, results_key: str, **kwargs: Any) -> Iterator[Dict[str, Any]]:
        """Page through a primary listing; any failure aborts the listing."""
        try:
            paginator = client.get_paginator(method)
            pages = paginator.paginate(PaginationConfig={"PageSize": self.page_size}, **kwargs)
            for page in pages:
                yield from page.get(results_key, [])
        except (ClientError, BotoCoreError) as e:
            code = error_code(e)
            logger.error("%s: %s failed: %s", self.name, method, code)
            raise AgentFetchFailure(self.name, f"{method} failed: {code}") from e

    def _call(self, client: Any, method: str, resource_id: str, **kwargs: Any) -> Dict[str, Any]:
        """Issue one auxiliary call."""
        try:
            return getattr(client, method)(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise TransientFetchError(method, resource_id, error_code(e)) from e

    # ScalingGroupFetcher

    def iter_scaling_groups(self) -> Iterator[Record]:
        for group in self._paginate(self._autoscaling, "describe_auto_scaling_groups", "AutoScalingGroups"):
            yield scaling_group_record(group)

    def describe_scaling_configuration(self, scaling_group: Record) -> Optional[Record]:
        name = scaling_group.get("launchConfigurationName")
        if name:
            resp = self._call(
                self._autoscaling, "describe_launch_configurations", name, LaunchConfigurationNames=[name]
            )
            configs = resp.get("LaunchConfigurations", [])
            if not configs:
                raise TransientFetchError("describe_launch_configurations", name, "LaunchConfigurationNotFound")
            config = configs[0]
            return {
                "scalingConfigurationId": name,
                "scalingConfigurationName": name,
                "imageId": config.get("ImageId"),
                "instanceType": config.get("InstanceType"),
                "keyName": config.get("KeyName"),
                "securityGroups": list(config.get("SecurityGroups", [])),
                "creationTime": _timestamp(config.get("CreatedTime")),
            }

        template = scaling_group.get("launchTemplate")
        if template and template.get("LaunchTemplateId"):
            template_id = template["LaunchTemplateId"]
            resp = self._call(
                self._ec2,
                "describe_launch_template_versions",
                template_id,
                LaunchTemplateId=template_id,
                Versions=[template.get("Version") or "$Default"],
            )
            versions = resp.get("LaunchTemplateVersions", [])
            if not versions:
                raise TransientFetchError("describe_launch_template_versions", template_id, "LaunchTemplateNotFound")
            version = versions[0]
            data = version.get("LaunchTemplateData") or {}
            return {
                "scalingConfigurationId": template_id,
                "scalingConfigurationName": version.get("LaunchTemplateName") or template.get("LaunchTemplateName"),
                "version": version.get("VersionNumber"),
                "imageId": data.get("ImageId"),
                "instanceType": data.get("InstanceType"),
                "keyName": data.get("KeyName"),
                "securityGroups": list(data.get("SecurityGroupIds", [])),
            }
        return None

    def describe_load_balancer(self, load_balancer_id: str) -> Record:
        resp = self._call(
            self._elb, "describe_load_balancers", load_balancer_id, LoadBalancerNames=[load_balancer_id]
        )
        descriptions = resp.get("LoadBalancerDescriptions", [])
        if not descriptions:
            raise TransientFetchError("describe_load_balancers", load_balancer_id, "LoadBalancerNotFound")
        record = load_balancer_record(descriptions[0], self.region)
        record["account"] = self.account
        return record

    def describe_instances(self, instance_ids: Iterable[str]) -> Dict[str, Record]:
        """Instance records by id, in one batched call.

        A stale id fails the whole batch with ``InvalidInstanceID.NotFound``;
        the batch is then retried one id at a time and the missing ids are
        skipped.
        """
        ids = [i for i in instance_ids if i]
        if not ids:
            return {}
        try:
            resp = self._call(self._ec2, "describe_instances", ",".join(ids), InstanceIds=ids)
        except TransientFetchError as e:
            if not e.not_found or len(ids) == 1:
                raise
            logger.info("%s: %s; describing instances one at a time", self.name, e.code)
            return self._describe_instances_singly(ids)
        found: Dict[str, Record] = {}
        for reservation in resp.get("Reservations", []):
            for inst in reservation.get("Instances", []):
                record = instance_record(inst, self.region)
                found[record["instanceId"]] = record
        return found

    def _describe_instances_singly(self, ids: List[str]) -> Dict[str, Record]:
        found: Dict[str, Record] = {}
        for instance_id in ids:
            try:
                found.update(self.describe_instances([instance_id]))
            except TransientFetchError as e:
                if not e.not_found:
                    raise
                logger.info("%s: instance %s -> NotFound", self.name, instance_id)
        return found

    # InstanceFetcher

    def iter_instances(self) -> Iterator[Record]:
        for reservation in self._paginate(self._ec2, "describe_instances", "Reservations"):
            for inst in reservation.get("Instances", []):
                yield instance_record(inst, self.region)

    # ImageFetcher

    def iter_images(self, owner: str) -> Iterator[Record]:
        for image in self._paginate(self._ec2, "describe_images", "Images", Owners=[owner]):
            yield image_record(image, owner)

    # InstanceTypeFetcher

    def iter_zone_instance_types(self) -> Iterator[Record]:
        zones = [
            zone.get("ZoneName")
            for zone in self._paginate_once(
                self._ec2,
                "describe_availability_zones",
                "AvailabilityZones",
                Filters=[{"Name": "state", "Values": ["available"]}],
            )
        ]
        offered: Dict[str, List[str]] = defaultdict(list)
        for offering in self._paginate(
            self._ec2,
            "describe_instance_type_offerings",
            "InstanceTypeOfferings",
            LocationType="availability-zone",
        ):
            offered[offering.get("Location")].append(offering.get("InstanceType"))
        for zone in zones:
            yield {"zoneId": zone, "regionId": self.region, "names": sorted(offered.get(zone, []))}

    def _paginate_once(self, client: Any, method: str, results_key: str, **kwargs: Any) -> List[Dict[str, Any]]:
        """Primary call for operations without a paginator."""
        try:
            return getattr(client, method)(**kwargs).get(results_key, [])
        except (ClientError, BotoCoreError) as e:
            code = error_code(e)
            logger.error("%s: %s failed: %s", self.name, method, code)
            raise AgentFetchFailure(self.name, f"{method} failed: {code}") from e

    # LoadBalancerFetcher

    def iter_load_balancers(self) -> Iterator[Record]:
        for description in self._paginate(self._elb, "describe_load_balancers", "LoadBalancerDescriptions"):
            record = load_balancer_record(description, self.region)
            record["account"] = self.account
            yield record
