from dataclasses import dataclass
from typing import Optional, Tuple

import boto3
import botocore

from relcache.errors import AgentFetchFailure


@dataclass
class CallerIdentity:
    account: str
    arn: str
    user_id: str
    resolved_region: Optional[str]
    partition: str


def resolve_session(profile: Optional[str] = None, region: Optional[str] = None) -> Tuple[boto3.Session, CallerIdentity]:
    """Create a boto3 session for an account profile and fetch caller identity.

    Raises:
        AgentFetchFailure: If the profile cannot be resolved or STS rejects it
    """
    label = profile or "default"
    try:
        session = boto3.Session(profile_name=profile, region_name=region)
        resp = session.client("sts").get_caller_identity()
    except (botocore.exceptions.BotoCoreError, botocore.exceptions.ClientError) as exc:
        raise AgentFetchFailure(label, f"Failed to resolve caller identity: {exc}") from exc

    arn: str = resp["Arn"]
    partition = arn.split(":")[1] if ":" in arn else "aws"
    return session, CallerIdentity(
        account=resp["Account"],
        arn=arn,
        user_id=resp["UserId"],
        resolved_region=session.region_name,
        partition=partition,
    )
