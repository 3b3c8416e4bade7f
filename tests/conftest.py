"""Shared test fixtures."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

EC2_ARN = "arn:aws:ec2:eu-west-1:111111111111:instance/i-0123abc"
ECS_ARN = "arn:aws:ecs:eu-west-1:111111111111:cluster/some-ecs-cluster"
S3_ARN = "arn:aws:s3:eu-west-1:111111111111:bucket/my-bucket"
LAMBDA_ARN = "arn:aws:lambda:eu-west-1:111111111111:function:my-fn"
MALFORMED_EC2_ARN = "arn:aws:ec2:eu-west-1:111111111111:instance"


def page(arns: list[str], token: str = "", tags: dict[str, str] | None = None) -> dict[str, Any]:
    """Build a GetResources response for *arns*."""
    tag_list = [{"Key": k, "Value": v} for k, v in (tags or {}).items()]
    return {
        "ResourceTagMappingList": [{"ResourceARN": a, "Tags": tag_list} for a in arns],
        "PaginationToken": token,
    }


def client_error(code: str, status: int = 400) -> ClientError:
    return ClientError(
        {
            "Error": {"Code": code, "Message": f"{code} raised by test"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        "GetResources",
    )


@pytest.fixture()
def make_client():
    """Return a factory for mock tagging clients that replay the given responses."""

    def _make(*responses: Any) -> MagicMock:
        client = MagicMock()
        client.get_resources.side_effect = list(responses)
        return client

    return _make


@pytest.fixture()
def delays() -> list[float]:
    """Collects backoff delays instead of sleeping."""
    return []
