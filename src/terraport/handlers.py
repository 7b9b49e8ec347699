"""Existence checks for the resource types terraport understands.

Every handler looks at one planned creation, asks AWS whether the resource is
already there and, if it is, either deletes it or returns the import command
that adopts it into state. ``CHECKABLE_RESOURCES`` maps Terraform resource
types to these handlers.
"""

import logging
from typing import Any, Callable, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from terraport.config import DrillOptions
from terraport.models import Remediation, RemediationAction, ResourceChange

log = logging.getLogger("terraport.handlers")

AWS_ERRORS = (ClientError, BotoCoreError)


class AwsClients:
    """One boto3 session and the service clients created from it."""

    def __init__(self, region: Optional[str] = None, session: Optional[boto3.Session] = None):
        self.session = session or boto3.Session(region_name=region)
        self._clients: Dict[str, Any] = {}
        self._account_id: Optional[str] = None

    def client(self, service: str):
        if service not in self._clients:
            self._clients[service] = self.session.client(service)
        return self._clients[service]

    def account_id(self, options: DrillOptions) -> str:
        if options.account_id:
            return options.account_id
        if self._account_id is None:
            self._account_id = self.client("sts").get_caller_identity()["Account"]
        return self._account_id


Handler = Callable[[ResourceChange, DrillOptions, AwsClients], Optional[Remediation]]


def _exists(call: Callable[..., Any], **params) -> bool:
    try:
        call(**params)
    except AWS_ERRORS as e:
        log.debug("%s(%s) failed, treating as absent: %s", getattr(call, "__name__", call), params, e)
        return False
    return True


def _remediate(
    change: ResourceChange,
    options: DrillOptions,
    kind: str,
    identifier: str,
    delete: Callable[[], Any],
) -> Remediation:
    if options.verbose:
        print(f"\n{identifier} already exists")

    if options.delete:
        if options.verbose:
            print(f"\n{kind} exists. Deleting...")
        try:
            delete()
        except AWS_ERRORS as e:
            print(f"Error deleting {kind.lower()}: {identifier}")
            log.error("Deleting %s %s failed: %s", kind.lower(), identifier, e)
            succeeded = False
        else:
            if options.verbose:
                print(f"Deleted {kind.lower()}: {identifier}")
            succeeded = True
        return Remediation(
            address=change.address,
            resource_type=change.type,
            identifier=identifier,
            action=RemediationAction.DELETE,
            succeeded=succeeded,
        )

    if options.output:
        print(f"\n{kind} {identifier} already exists")
        print("Run the following to import this resource into your state:")
    return Remediation(
        address=change.address,
        resource_type=change.type,
        identifier=identifier,
        action=RemediationAction.IMPORT,
        command=options.import_command(change.address, identifier),
    )


def check_iam_role(change: ResourceChange, options: DrillOptions, aws: AwsClients) -> Optional[Remediation]:
    name = change.attribute("name")
    if not name:
        return None
    iam = aws.client("iam")
    if not _exists(iam.get_role, RoleName=name):
        return None
    return _remediate(change, options, "Role", name, lambda: iam.delete_role(RoleName=name))


def policy_arn(account_id: str, name: str, path: Optional[str] = None) -> str:
    """Build the ARN terraform imports an aws_iam_policy by."""
    path = path or "/"
    if not path.startswith("/"):
        path = "/" + path
    if not path.endswith("/"):
        path += "/"
    return f"arn:aws:iam::{account_id}:policy{path}{name}"


def check_iam_policy(change: ResourceChange, options: DrillOptions, aws: AwsClients) -> Optional[Remediation]:
    name = change.attribute("name")
    if not name:
        return None
    try:
        account_id = aws.account_id(options)
    except AWS_ERRORS as e:
        log.warning("Cannot resolve account id to check policy %s: %s", name, e)
        return None
    arn = policy_arn(account_id, name, change.attribute("path"))
    iam = aws.client("iam")
    if not _exists(iam.get_policy, PolicyArn=arn):
        return None
    return _remediate(change, options, "Policy", arn, lambda: iam.delete_policy(PolicyArn=arn))


def check_cloudwatch_log_group(change: ResourceChange, options: DrillOptions, aws: AwsClients) -> Optional[Remediation]:
    name = change.attribute("name")
    if not name:
        return None
    logs = aws.client("logs")
    try:
        response = logs.describe_log_groups(logGroupNamePrefix=name)
    except AWS_ERRORS as e:
        log.debug("describe_log_groups(%s) failed, treating as absent: %s", name, e)
        return None
    # the prefix filter also returns longer names
    if not any(group.get("logGroupName") == name for group in response.get("logGroups", [])):
        return None
    return _remediate(change, options, "Log group", name, lambda: logs.delete_log_group(logGroupName=name))


def check_eks_cluster(change: ResourceChange, options: DrillOptions, aws: AwsClients) -> Optional[Remediation]:
    name = change.attribute("name")
    if not name:
        return None
    eks = aws.client("eks")
    if not _exists(eks.describe_cluster, name=name):
        return None
    return _remediate(change, options, "Cluster", name, lambda: eks.delete_cluster(name=name))


def check_iam_instance_profile(change: ResourceChange, options: DrillOptions, aws: AwsClients) -> Optional[Remediation]:
    name = change.attribute("name")
    if not name:
        return None
    iam = aws.client("iam")
    if not _exists(iam.get_instance_profile, InstanceProfileName=name):
        return None
    return _remediate(
        change, options, "Instance profile", name,
        lambda: iam.delete_instance_profile(InstanceProfileName=name),
    )


def check_ecr_repository(change: ResourceChange, options: DrillOptions, aws: AwsClients) -> Optional[Remediation]:
    name = change.attribute("name")
    if not name:
        return None
    ecr = aws.client("ecr")
    if not _exists(ecr.describe_repositories, repositoryNames=[name]):
        return None
    return _remediate(change, options, "Repository", name, lambda: ecr.delete_repository(repositoryName=name))


def check_ecr_lifecycle_policy(change: ResourceChange, options: DrillOptions, aws: AwsClients) -> Optional[Remediation]:
    repository = change.attribute("repository")
    if not repository:
        return None
    ecr = aws.client("ecr")
    if not _exists(ecr.get_lifecycle_policy, repositoryName=repository):
        return None
    return _remediate(
        change, options, "Lifecycle policy", repository,
        lambda: ecr.delete_lifecycle_policy(repositoryName=repository),
    )


CHECKABLE_RESOURCES: Dict[str, Handler] = {
    "aws_iam_role": check_iam_role,
    "aws_iam_policy": check_iam_policy,
    "aws_cloudwatch_log_group": check_cloudwatch_log_group,
    "aws_eks_cluster": check_eks_cluster,
    "aws_iam_instance_profile": check_iam_instance_profile,
    "aws_ecr_repository": check_ecr_repository,
    "aws_ecr_lifecycle_policy": check_ecr_lifecycle_policy,
}
