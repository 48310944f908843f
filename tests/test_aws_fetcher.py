"""Tests for the boto3-backed fetcher.

Record mapping and error handling use mocked clients; the end-to-end
checks run against moto when it is installed.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from relcache.errors import AgentFetchFailure, TransientFetchError
from relcache.providers.aws import (
    AwsFetcher,
    error_code,
    get_tags_dict,
    image_record,
    instance_record,
    load_balancer_record,
    scaling_group_record,
)


def client_error(code, operation="Describe"):
    return ClientError({"Error": {"Code": code, "Message": "test"}}, operation)


@pytest.fixture
def clients():
    return {"autoscaling": MagicMock(), "ec2": MagicMock(), "elb": MagicMock()}


@pytest.fixture
def mock_fetcher(clients):
    session = MagicMock()
    session.client.side_effect = lambda service, region_name=None: clients[service]
    return AwsFetcher(session, "prod", "us-east-1", page_size=10)


class TestRecordMapping:
    """Tests for boto3 response mapping."""

    def test_scaling_group_record(self):
        """Test field mapping and timestamp formatting."""
        record = scaling_group_record(
            {
                "AutoScalingGroupName": "web-prod-v001",
                "AutoScalingGroupARN": "arn:asg",
                "LaunchConfigurationName": "lc-1",
                "MinSize": 1,
                "MaxSize": 3,
                "DesiredCapacity": 2,
                "CreatedTime": datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
                "LoadBalancerNames": ["web-elb"],
                "Tags": [{"Key": "team", "Value": "core"}],
                "Instances": [
                    {"InstanceId": "i-1", "HealthStatus": "Healthy", "AvailabilityZone": "us-east-1a"},
                ],
            }
        )

        assert record["scalingGroupName"] == "web-prod-v001"
        assert record["lifecycleState"] == "Active"
        assert record["creationTime"] == "2024-01-02T03:04Z"
        assert record["loadBalancerIds"] == ["web-elb"]
        assert record["activeScalingConfigurationId"] == "lc-1"
        assert record["tags"] == {"team": "core"}
        assert record["instances"][0]["zoneId"] == "us-east-1a"

    @pytest.mark.parametrize(
        "extra",
        [
            {"Status": "Delete in progress"},
            {"SuspendedProcesses": [{"ProcessName": "Launch"}]},
            {"SuspendedProcesses": [{"ProcessName": "AddToLoadBalancer"}]},
        ],
    )
    def test_out_of_service_group_is_inactive(self, extra):
        """Test deleting groups and suspended launches read as Inactive."""
        record = scaling_group_record(dict({"AutoScalingGroupName": "web-v001"}, **extra))

        assert record["lifecycleState"] == "Inactive"

    def test_other_suspended_process_stays_active(self):
        record = scaling_group_record(
            {"AutoScalingGroupName": "web-v001", "SuspendedProcesses": [{"ProcessName": "AZRebalance"}]}
        )

        assert record["lifecycleState"] == "Active"

    def test_launch_template_from_mixed_policy(self):
        """Test the launch template inside a mixed instances policy is found."""
        template = {"LaunchTemplateId": "lt-1", "Version": "$Latest"}
        record = scaling_group_record(
            {
                "AutoScalingGroupName": "web-v001",
                "MixedInstancesPolicy": {"LaunchTemplate": {"LaunchTemplateSpecification": template}},
            }
        )

        assert record["launchTemplate"] == template
        assert record["activeScalingConfigurationId"] == "lt-1"

    def test_instance_record(self):
        record = instance_record(
            {"InstanceId": "i-1", "Placement": {"AvailabilityZone": "us-east-1b"}, "State": {"Name": "running"}},
            "us-east-1",
        )

        assert record["zoneId"] == "us-east-1b"
        assert record["state"] == "running"
        assert record["tags"] == {}

    def test_load_balancer_record(self):
        record = load_balancer_record(
            {"LoadBalancerName": "web-elb", "VPCId": "vpc-1", "Instances": [{"InstanceId": "i-1"}, {}]},
            "us-east-1",
        )

        assert record["loadBalancerId"] == "web-elb"
        assert record["vpcId"] == "vpc-1"
        assert record["instances"] == ["i-1"]

    def test_image_record_owner_fallback(self):
        record = image_record({"ImageId": "ami-1", "Name": "base"}, "self")

        assert record["imageName"] == "base"
        assert record["imageOwnerAlias"] == "self"

    def test_helpers(self):
        """Test tag conversion and error codes."""
        assert get_tags_dict(None) == {}
        assert get_tags_dict([{"Key": "", "Value": "x"}, {"Key": "a", "Value": "b"}]) == {"a": "b"}
        assert error_code(client_error("Throttling")) == "Throttling"
        assert error_code(EndpointConnectionError(endpoint_url="http://x")) == "EndpointConnectionError"


class TestErrorMapping:
    """Tests for mapping provider failures onto the error taxonomy."""

    def test_listing_failure_is_agent_failure(self, mock_fetcher, clients):
        """Test a failed page aborts the listing."""
        clients["autoscaling"].get_paginator.return_value.paginate.side_effect = client_error("AccessDenied")

        with pytest.raises(AgentFetchFailure) as exc:
            list(mock_fetcher.iter_scaling_groups())
        assert "AccessDenied" in str(exc.value)

    def test_page_size_is_passed(self, mock_fetcher, clients):
        """Test the configured page size reaches the paginator."""
        clients["ec2"].get_paginator.return_value.paginate.return_value = [{"Reservations": []}]

        list(mock_fetcher.iter_instances())

        kwargs = clients["ec2"].get_paginator.return_value.paginate.call_args[1]
        assert kwargs["PaginationConfig"] == {"PageSize": 10}

    def test_load_balancer_not_found(self, mock_fetcher, clients):
        """Test a missing balancer is a NotFound transient error."""
        clients["elb"].describe_load_balancers.side_effect = client_error("LoadBalancerNotFound")

        with pytest.raises(TransientFetchError) as exc:
            mock_fetcher.describe_load_balancer("gone")
        assert exc.value.not_found
        assert exc.value.resource_id == "gone"

    def test_load_balancer_throttled(self, mock_fetcher, clients):
        clients["elb"].describe_load_balancers.side_effect = client_error("Throttling")

        with pytest.raises(TransientFetchError) as exc:
            mock_fetcher.describe_load_balancer("busy")
        assert not exc.value.not_found

    def test_empty_describe_is_not_found(self, mock_fetcher, clients):
        clients["elb"].describe_load_balancers.return_value = {"LoadBalancerDescriptions": []}

        with pytest.raises(TransientFetchError) as exc:
            mock_fetcher.describe_load_balancer("gone")
        assert exc.value.not_found

    def test_describe_instances_without_ids(self, mock_fetcher, clients):
        """Test no call is made for an empty id list."""
        assert mock_fetcher.describe_instances([]) == {}
        clients["ec2"].describe_instances.assert_not_called()

    def test_stale_instance_id_only_loses_itself(self, mock_fetcher, clients):
        """Test a batch failing on one missing id is retried per id and keeps the others."""

        def describe(InstanceIds):
            if InstanceIds == ["i-live"]:
                return {"Reservations": [{"Instances": [{"InstanceId": "i-live"}]}]}
            raise client_error("InvalidInstanceID.NotFound")

        clients["ec2"].describe_instances.side_effect = describe

        found = mock_fetcher.describe_instances(["i-live", "i-gone"])

        assert list(found) == ["i-live"]
        assert clients["ec2"].describe_instances.call_count == 3

    def test_instance_batch_throttled_is_not_retried(self, mock_fetcher, clients):
        """Test errors other than NotFound still fail the batch."""
        clients["ec2"].describe_instances.side_effect = client_error("RequestLimitExceeded")

        with pytest.raises(TransientFetchError):
            mock_fetcher.describe_instances(["i-1", "i-2"])
        assert clients["ec2"].describe_instances.call_count == 1

    def test_zone_listing_failure(self, mock_fetcher, clients):
        clients["ec2"].describe_availability_zones.side_effect = client_error("UnauthorizedOperation")

        with pytest.raises(AgentFetchFailure):
            list(mock_fetcher.iter_zone_instance_types())

    def test_no_scaling_configuration(self, mock_fetcher):
        assert mock_fetcher.describe_scaling_configuration({"launchConfigurationName": None}) is None


@pytest.mark.aws
class TestAwsFetcherMoto:
    """End-to-end checks against moto."""

    @pytest.fixture
    def aws(self, monkeypatch):
        moto = pytest.importorskip("moto")
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
        monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
        with moto.mock_aws():
            import boto3

            session = boto3.Session(region_name="us-east-1")
            ec2 = session.client("ec2")
            ami = ec2.describe_images(Owners=["amazon"])["Images"][0]["ImageId"]
            session.client("elb").create_load_balancer(
                LoadBalancerName="web-elb",
                Listeners=[{"Protocol": "HTTP", "LoadBalancerPort": 80, "InstancePort": 8080}],
                AvailabilityZones=["us-east-1a"],
            )
            autoscaling = session.client("autoscaling")
            autoscaling.create_launch_configuration(
                LaunchConfigurationName="web-lc", ImageId=ami, InstanceType="t2.micro"
            )
            autoscaling.create_auto_scaling_group(
                AutoScalingGroupName="web-prod-v001",
                LaunchConfigurationName="web-lc",
                MinSize=1,
                MaxSize=2,
                DesiredCapacity=1,
                AvailabilityZones=["us-east-1a"],
                LoadBalancerNames=["web-elb"],
            )
            yield AwsFetcher(session, "prod", "us-east-1", page_size=50), ami

    def test_scaling_groups(self, aws):
        """Test scaling groups are listed with their instances."""
        fetcher, _ = aws

        groups = list(fetcher.iter_scaling_groups())

        assert [g["scalingGroupName"] for g in groups] == ["web-prod-v001"]
        assert groups[0]["loadBalancerIds"] == ["web-elb"]
        assert len(groups[0]["instances"]) == 1

    def test_scaling_configuration(self, aws):
        fetcher, ami = aws
        group = next(fetcher.iter_scaling_groups())

        config = fetcher.describe_scaling_configuration(group)

        assert config["scalingConfigurationName"] == "web-lc"
        assert config["imageId"] == ami

    def test_load_balancer(self, aws):
        fetcher, _ = aws

        record = fetcher.describe_load_balancer("web-elb")

        assert record["loadBalancerName"] == "web-elb"
        assert record["account"] == "prod"
        with pytest.raises(TransientFetchError) as exc:
            fetcher.describe_load_balancer("missing-elb")
        assert exc.value.not_found

    def test_instances(self, aws):
        """Test the group's instance is described with its zone."""
        fetcher, _ = aws
        instance_id = next(fetcher.iter_scaling_groups())["instances"][0]["instanceId"]

        details = fetcher.describe_instances([instance_id])

        assert details[instance_id]["zoneId"] == "us-east-1a"
        assert details[instance_id]["tags"]["aws:autoscaling:groupName"] == "web-prod-v001"

    def test_own_images(self, aws):
        fetcher, _ = aws

        assert list(fetcher.iter_images("self")) == []
