"""Tests for relcache.keys module.

This module tests key encoding, decoding, escaping and search patterns.
"""

from __future__ import annotations

import pytest

from relcache import keys
from relcache.cache.search import filter_glob
from relcache.errors import InvalidKeyError, KeyFormatError
from relcache.keys import Namespace, decode, encode, search_pattern


class TestEncode:
    """Tests for encode and the key builders."""

    def test_server_group_key_layout(self):
        """Test server group keys list account, region, then name."""
        assert keys.server_group_key("web-v001", "prod", "us-east-1") == "aws:serverGroup:prod:us-east-1:web-v001"

    def test_cluster_key_layout(self):
        """Test cluster keys are account, application, cluster."""
        assert keys.cluster_key("web-prod", "web", "prod") == "aws:cluster:prod:web:web-prod"

    def test_load_balancer_vpc_is_optional(self):
        """Test a missing VPC id drops the trailing field."""
        assert keys.load_balancer_key("elb", "prod", "us-east-1") == "aws:loadBalancer:prod:us-east-1:elb"
        assert (
            keys.load_balancer_key("elb", "prod", "us-east-1", "vpc-1")
            == "aws:loadBalancer:prod:us-east-1:elb:vpc-1"
        )

    def test_deterministic(self):
        """Test two encodings of the same entity are identical."""
        assert keys.instance_key("i-1", "prod", "us-east-1") == keys.instance_key("i-1", "prod", "us-east-1")

    def test_delimiter_and_wildcard_are_escaped(self):
        """Test ':' '*' and '%' never appear raw inside a field."""
        key = encode(Namespace.NAMED_IMAGES, "prod", "base:2024*%")
        assert key == "aws:namedImage:prod:base%3A2024%2A%25"

    def test_distinct_entities_never_collide(self):
        """Test fields containing the delimiter cannot alias other keys."""
        a = encode(Namespace.NAMED_IMAGES, "a:b", "c")
        b = encode(Namespace.NAMED_IMAGES, "a", "b:c")
        assert a != b

    def test_none_required_field_raises(self):
        """Test a None required field is rejected."""
        with pytest.raises(InvalidKeyError):
            keys.server_group_key(None, "prod", "us-east-1")

    def test_empty_field_raises(self):
        """Test an empty required field is rejected."""
        with pytest.raises(InvalidKeyError):
            keys.application_key("")

    def test_wrong_arity_raises(self):
        """Test too many or too few fields are rejected."""
        with pytest.raises(InvalidKeyError):
            encode(Namespace.APPLICATIONS, "web", "extra")
        with pytest.raises(InvalidKeyError):
            encode(Namespace.INSTANCES, "prod", "us-east-1")

    def test_unknown_namespace_raises(self):
        """Test an unknown namespace is rejected."""
        with pytest.raises(InvalidKeyError):
            encode("bucket", "x")


class TestDecode:
    """Tests for decode."""

    @pytest.mark.parametrize(
        "namespace,fields",
        [
            (Namespace.APPLICATIONS, ("web",)),
            (Namespace.CLUSTERS, ("prod", "web", "web-prod")),
            (Namespace.SERVER_GROUPS, ("prod", "us-east-1", "web-prod-v001")),
            (Namespace.LOAD_BALANCERS, ("prod", "us-east-1", "elb", "vpc-1")),
            (Namespace.LOAD_BALANCERS, ("prod", "us-east-1", "elb")),
            (Namespace.NAMED_IMAGES, ("prod", "base:image*100%")),
            (Namespace.INSTANCE_TYPES, ("prod", "us-east-1", "us-east-1a")),
        ],
    )
    def test_round_trip(self, namespace, fields):
        """Test decode is the exact inverse of encode."""
        assert decode(encode(namespace, *fields)) == (namespace, fields)

    def test_as_dict_names_fields(self):
        """Test decoded keys expose field names."""
        key = decode(keys.instance_key("i-1", "prod", "us-east-1"))
        assert key.as_dict() == {"account": "prod", "region": "us-east-1", "instanceId": "i-1"}

    @pytest.mark.parametrize(
        "raw",
        [
            "",
            "aws",
            "gcp:application:web",
            "aws:bucket:x",
            "aws:instance:prod:us-east-1",
            "aws:application:web:extra",
            "aws:application:we*b",
            "aws:cluster:prod::web",
        ],
    )
    def test_malformed_raises(self, raw):
        """Test strings that are not keys raise KeyFormatError."""
        with pytest.raises(KeyFormatError):
            decode(raw)


class TestSearchPattern:
    """Tests for search_pattern."""

    def test_trailing_fields_become_wildcard(self):
        """Test unspecified required fields are matched by '*'."""
        assert search_pattern(Namespace.SERVER_GROUPS, "prod", "us-east-1") == "aws:serverGroup:prod:us-east-1:*"

    def test_none_field_is_wildcard(self):
        """Test None in the middle matches anything."""
        assert search_pattern(Namespace.IMAGES, None, None, "ami-1*") == "aws:image:*:*:ami-1*"

    def test_optional_trailing_field(self):
        """Test a complete required prefix still matches VPC-suffixed keys."""
        pattern = search_pattern(Namespace.LOAD_BALANCERS, "prod", "us-east-1", "elb")
        ids = {
            keys.load_balancer_key("elb", "prod", "us-east-1"),
            keys.load_balancer_key("elb", "prod", "us-east-1", "vpc-1"),
            keys.load_balancer_key("other", "prod", "us-east-1"),
        }
        assert filter_glob(pattern, ids) == {
            "aws:loadBalancer:prod:us-east-1:elb",
            "aws:loadBalancer:prod:us-east-1:elb:vpc-1",
        }

    def test_literal_characters_are_escaped(self):
        """Test delimiters inside a supplied field stay literal."""
        pattern = search_pattern(Namespace.NAMED_IMAGES, "prod", "base:1*")
        assert pattern == "aws:namedImage:prod:base%3A1*"
        assert filter_glob(pattern, {encode(Namespace.NAMED_IMAGES, "prod", "base:10")})

    def test_prefix_search_matches_only_prefix(self):
        """Test 'app*' matches app-v001 and app-v002 but not other-v001."""
        ids = {
            keys.server_group_key("app-v001", "acct", "region"),
            keys.server_group_key("app-v002", "acct", "region"),
            keys.server_group_key("other-v001", "acct", "region"),
        }
        found = filter_glob(search_pattern(Namespace.SERVER_GROUPS, "acct", "region", "app*"), ids)
        assert found == {"aws:serverGroup:acct:region:app-v001", "aws:serverGroup:acct:region:app-v002"}
