"""Tests for tag_inventory.normalizer: ARN decomposition rules."""

import pytest

from tag_inventory import normalizer
from tag_inventory.arn import service_from_arn, short_arn
from tag_inventory.errors import InvalidIdentifierFormat, MalformedResourceIdentifier
from tag_inventory.normalizer import (
    all_rules,
    generic_rule,
    normalize,
    register_rule,
    resource_from_arn,
    rule_for,
    slash_rule,
    tags_to_dict,
)

from tests.conftest import EC2_ARN, ECS_ARN, LAMBDA_ARN, MALFORMED_EC2_ARN, S3_ARN


class TestRules:
    def test_generic_rule_keeps_whole_identifier(self) -> None:
        assert generic_rule("bucket/my-bucket", "s3") == (None, "bucket/my-bucket")

    def test_slash_rule_splits_on_first_slash(self) -> None:
        assert slash_rule("service/prod/web", "ecs") == ("service", "prod/web")

    def test_slash_rule_round_trip(self) -> None:
        product, ident = slash_rule("instance/i-0123", "ec2")
        assert (product, ident) == ("instance", "i-0123")
        assert f"{product}/{ident}" == "instance/i-0123"

    @pytest.mark.parametrize("short", ["instance", "/i-0123", "instance/"])
    def test_slash_rule_rejects_malformed(self, short: str) -> None:
        with pytest.raises(MalformedResourceIdentifier) as excinfo:
            slash_rule(short, "ec2")
        assert excinfo.value.service == "ec2"
        assert excinfo.value.identifier == short

    def test_unknown_service_falls_back_to_generic(self) -> None:
        assert rule_for("s3") is generic_rule
        assert rule_for("no-such-service") is generic_rule

    @pytest.mark.parametrize("service", ["ec2", "ecs"])
    def test_ec2_and_ecs_use_slash_rule(self, service: str) -> None:
        assert rule_for(service) is slash_rule
        assert service in all_rules()

    def test_register_rule_does_not_touch_other_rules(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(normalizer, "_RULES", dict(normalizer._RULES))
        before = all_rules()

        def queue_rule(short: str, service: str) -> tuple[str | None, str]:
            return "queue", short

        register_rule("sqs", queue_rule)

        assert rule_for("sqs") is queue_rule
        assert rule_for("s3") is generic_rule
        assert {k: v for k, v in all_rules().items() if k != "sqs"} == before

    def test_all_rules_returns_copy(self) -> None:
        rules = all_rules()
        rules["ec2"] = generic_rule
        assert rule_for("ec2") is slash_rule


class TestNormalize:
    def test_known_service(self) -> None:
        r = resource_from_arn(EC2_ARN, "eu-west-1")
        assert r.region == "eu-west-1"
        assert r.service == "ec2"
        assert r.product == "instance"
        assert r.id == "i-0123abc"
        assert r.full_identifier == EC2_ARN
        assert r.account == "111111111111"

    def test_unknown_service_uses_generic_rule(self) -> None:
        r = resource_from_arn(S3_ARN, "eu-west-1")
        assert r.service == "s3"
        assert r.product is None
        assert r.id == "bucket/my-bucket"

    def test_ecs_cluster(self) -> None:
        r = resource_from_arn(ECS_ARN, "eu-west-1")
        assert (r.product, r.id) == ("cluster", "some-ecs-cluster")

    def test_colon_style_resource(self) -> None:
        r = resource_from_arn(LAMBDA_ARN, "eu-west-1")
        assert (r.service, r.product, r.id) == ("lambda", "function", "my-fn")

    def test_malformed_ec2_raises(self) -> None:
        with pytest.raises(MalformedResourceIdentifier):
            resource_from_arn(MALFORMED_EC2_ARN, "eu-west-1")

    def test_invalid_arn_raises(self) -> None:
        with pytest.raises(InvalidIdentifierFormat):
            resource_from_arn("arn:aws:ec2:eu-west-1", "eu-west-1")

    def test_classified_service_selects_rule(self) -> None:
        for arn in (EC2_ARN, ECS_ARN, S3_ARN, LAMBDA_ARN):
            service = service_from_arn(arn)
            product, ident = rule_for(service)(short_arn(arn), service)
            r = resource_from_arn(arn, "eu-west-1")
            assert (r.service, r.product, r.id) == (service, product, ident)

    def test_idempotent(self) -> None:
        first = resource_from_arn(EC2_ARN, "eu-west-1", tags={"Name": "web"})
        second = resource_from_arn(EC2_ARN, "eu-west-1", tags={"Name": "web"})
        assert first == second

    def test_short_identifier_reconstructs_input(self) -> None:
        for arn in (EC2_ARN, S3_ARN):
            assert resource_from_arn(arn, "eu-west-1").short_identifier == short_arn(arn)

    def test_normalize_without_full_arn(self) -> None:
        r = normalize("vpc/vpc-1", "ec2", "eu-west-1")
        assert r.full_identifier == "vpc/vpc-1"
        assert r.account == ""

    def test_tags_are_copied(self) -> None:
        tags = {"Env": "prod"}
        r = resource_from_arn(EC2_ARN, "eu-west-1", tags=tags)
        tags["Env"] = "dev"
        assert r.tags == {"Env": "prod"}


class TestTagsToDict:
    def test_converts_key_value_list(self) -> None:
        assert tags_to_dict([{"Key": "Env", "Value": "prod"}, {"Key": "Team"}]) == {
            "Env": "prod",
            "Team": "",
        }

    def test_none(self) -> None:
        assert tags_to_dict(None) == {}
