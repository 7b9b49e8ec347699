import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError, NoCredentialsError

from terraport.config import DrillOptions
from terraport.handlers import CHECKABLE_RESOURCES, AwsClients, policy_arn
from terraport.models import RemediationAction, ResourceChange


def client_error(code, operation):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


def resource(resource_type, after, address=None):
    return ResourceChange(
        address=address or f"{resource_type}.this",
        type=resource_type,
        name="this",
        change={"actions": ["create"], "before": None, "after": after},
    )


class HandlerTestCase(unittest.TestCase):
    def setUp(self):
        self.clients = {}
        self.session = MagicMock()
        self.session.client.side_effect = lambda service: self.clients.setdefault(service, MagicMock())
        self.aws = AwsClients(session=self.session)
        self.print_patcher = patch("builtins.print")
        self.mock_print = self.print_patcher.start()
        self.addCleanup(self.print_patcher.stop)

    def client(self, service):
        return self.clients.setdefault(service, MagicMock())

    def check(self, change, **options):
        return CHECKABLE_RESOURCES[change.type](change, DrillOptions(**options), self.aws)

    def printed(self):
        return [call.args[0] if call.args else "" for call in self.mock_print.call_args_list]


class TestIamRole(HandlerTestCase):
    def test_existing_role_yields_import_command(self):
        change = resource("aws_iam_role", {"name": "app-role"}, address="aws_iam_role.app")

        remediation = self.check(change)

        self.client("iam").get_role.assert_called_once_with(RoleName="app-role")
        self.assertEqual(remediation.action, RemediationAction.IMPORT)
        self.assertEqual(remediation.command, "terraform import 'aws_iam_role.app' app-role")
        self.client("iam").delete_role.assert_not_called()

    def test_missing_role_is_skipped(self):
        self.client("iam").get_role.side_effect = client_error("NoSuchEntity", "GetRole")

        self.assertIsNone(self.check(resource("aws_iam_role", {"name": "app-role"})))

    def test_existing_role_is_deleted(self):
        remediation = self.check(resource("aws_iam_role", {"name": "app-role"}), delete=True)

        self.client("iam").delete_role.assert_called_once_with(RoleName="app-role")
        self.assertEqual(remediation.action, RemediationAction.DELETE)
        self.assertTrue(remediation.succeeded)
        self.assertIsNone(remediation.command)

    def test_failed_delete_is_reported(self):
        self.client("iam").delete_role.side_effect = client_error("DeleteConflict", "DeleteRole")

        remediation = self.check(resource("aws_iam_role", {"name": "app-role"}), delete=True)

        self.assertFalse(remediation.succeeded)
        self.assertIn("Error deleting role: app-role", self.printed())

    def test_unknown_name_skips_lookup(self):
        self.assertIsNone(self.check(resource("aws_iam_role", {"name": None})))
        self.assertIsNone(self.check(resource("aws_iam_role", None)))
        self.session.client.assert_not_called()

    def test_credentials_error_is_treated_as_absent(self):
        self.client("iam").get_role.side_effect = NoCredentialsError()

        self.assertIsNone(self.check(resource("aws_iam_role", {"name": "app-role"})))

    def test_onepassword_and_output(self):
        change = resource("aws_iam_role", {"name": "app-role"}, address="aws_iam_role.app")

        remediation = self.check(change, onepassword=True, output=True)

        self.assertEqual(
            remediation.command,
            "op run --env-file=.env -- terraform import 'aws_iam_role.app' app-role"
        )
        self.assertIn("\nRole app-role already exists", self.printed())
        self.assertIn("Run the following to import this resource into your state:", self.printed())


class TestIamPolicy(HandlerTestCase):
    def test_policy_arn(self):
        self.assertEqual(policy_arn("123456789012", "read"), "arn:aws:iam::123456789012:policy/read")
        self.assertEqual(
            policy_arn("123456789012", "read", "/service/"),
            "arn:aws:iam::123456789012:policy/service/read"
        )
        self.assertEqual(
            policy_arn("123456789012", "read", "service"),
            "arn:aws:iam::123456789012:policy/service/read"
        )

    def test_account_id_from_sts(self):
        self.client("sts").get_caller_identity.return_value = {"Account": "111122223333"}
        change = resource("aws_iam_policy", {"name": "read", "path": "/"}, address="aws_iam_policy.read")

        remediation = self.check(change)

        arn = "arn:aws:iam::111122223333:policy/read"
        self.client("iam").get_policy.assert_called_once_with(PolicyArn=arn)
        self.assertEqual(remediation.command, f"terraform import 'aws_iam_policy.read' {arn}")

    def test_account_id_option_skips_sts(self):
        change = resource("aws_iam_policy", {"name": "read"})

        remediation = self.check(change, account_id="444455556666")

        self.assertNotIn("sts", self.clients)
        self.assertEqual(remediation.identifier, "arn:aws:iam::444455556666:policy/read")

    def test_account_id_lookup_failure_skips_check(self):
        self.client("sts").get_caller_identity.side_effect = NoCredentialsError()

        self.assertIsNone(self.check(resource("aws_iam_policy", {"name": "read"})))
        self.client("iam").get_policy.assert_not_called()

    def test_delete_policy(self):
        self.check(resource("aws_iam_policy", {"name": "read"}), account_id="1", delete=True)

        self.client("iam").delete_policy.assert_called_once_with(PolicyArn="arn:aws:iam::1:policy/read")


class TestCloudwatchLogGroup(HandlerTestCase):
    def test_exact_name_match_required(self):
        self.client("logs").describe_log_groups.return_value = {
            "logGroups": [{"logGroupName": "/app/api-worker"}]
        }

        self.assertIsNone(self.check(resource("aws_cloudwatch_log_group", {"name": "/app/api"})))

    def test_existing_log_group(self):
        self.client("logs").describe_log_groups.return_value = {
            "logGroups": [{"logGroupName": "/app/api"}, {"logGroupName": "/app/api-worker"}]
        }
        change = resource("aws_cloudwatch_log_group", {"name": "/app/api"}, address="aws_cloudwatch_log_group.api")

        remediation = self.check(change)

        self.client("logs").describe_log_groups.assert_called_once_with(logGroupNamePrefix="/app/api")
        self.assertEqual(remediation.command, "terraform import 'aws_cloudwatch_log_group.api' /app/api")

    def test_delete_log_group(self):
        self.client("logs").describe_log_groups.return_value = {"logGroups": [{"logGroupName": "/app/api"}]}

        self.check(resource("aws_cloudwatch_log_group", {"name": "/app/api"}), delete=True, verbose=True)

        self.client("logs").delete_log_group.assert_called_once_with(logGroupName="/app/api")
        self.assertIn("Deleted log group: /app/api", self.printed())

    def test_describe_failure(self):
        self.client("logs").describe_log_groups.side_effect = client_error("AccessDeniedException", "DescribeLogGroups")

        self.assertIsNone(self.check(resource("aws_cloudwatch_log_group", {"name": "/app/api"})))


class TestEksCluster(HandlerTestCase):
    def test_existing_cluster_import_command(self):
        change = resource("aws_eks_cluster", {"name": "main"}, address="aws_eks_cluster.main")

        remediation = self.check(change)

        self.client("eks").describe_cluster.assert_called_once_with(name="main")
        self.assertEqual(remediation.command, "terraform import 'aws_eks_cluster.main' main")

    def test_missing_cluster(self):
        self.client("eks").describe_cluster.side_effect = client_error("ResourceNotFoundException", "DescribeCluster")

        self.assertIsNone(self.check(resource("aws_eks_cluster", {"name": "main"})))

    def test_delete_cluster(self):
        self.check(resource("aws_eks_cluster", {"name": "main"}), delete=True)

        self.client("eks").delete_cluster.assert_called_once_with(name="main")


class TestIamInstanceProfile(HandlerTestCase):
    def test_existing_instance_profile(self):
        remediation = self.check(resource("aws_iam_instance_profile", {"name": "nodes"}))

        self.client("iam").get_instance_profile.assert_called_once_with(InstanceProfileName="nodes")
        self.assertEqual(remediation.identifier, "nodes")

    def test_delete_instance_profile(self):
        self.check(resource("aws_iam_instance_profile", {"name": "nodes"}), delete=True)

        self.client("iam").delete_instance_profile.assert_called_once_with(InstanceProfileName="nodes")


class TestEcr(HandlerTestCase):
    def test_existing_repository(self):
        remediation = self.check(resource("aws_ecr_repository", {"name": "api"}, address="aws_ecr_repository.api"))

        self.client("ecr").describe_repositories.assert_called_once_with(repositoryNames=["api"])
        self.assertEqual(remediation.command, "terraform import 'aws_ecr_repository.api' api")

    def test_missing_repository(self):
        self.client("ecr").describe_repositories.side_effect = client_error(
            "RepositoryNotFoundException", "DescribeRepositories"
        )

        self.assertIsNone(self.check(resource("aws_ecr_repository", {"name": "api"})))

    def test_lifecycle_policy_keyed_by_repository(self):
        change = resource("aws_ecr_lifecycle_policy", {"repository": "api", "policy": "{}"},
                          address="aws_ecr_lifecycle_policy.api")

        remediation = self.check(change)

        self.client("ecr").get_lifecycle_policy.assert_called_once_with(repositoryName="api")
        self.assertEqual(remediation.command, "terraform import 'aws_ecr_lifecycle_policy.api' api")

    def test_lifecycle_policy_without_repository(self):
        self.assertIsNone(self.check(resource("aws_ecr_lifecycle_policy", {"name": "api"})))

    def test_delete_lifecycle_policy(self):
        self.check(resource("aws_ecr_lifecycle_policy", {"repository": "api"}), delete=True)

        self.client("ecr").delete_lifecycle_policy.assert_called_once_with(repositoryName="api")


class TestAwsClients(unittest.TestCase):
    def test_clients_are_cached(self):
        session = MagicMock()
        aws = AwsClients(session=session)

        self.assertIs(aws.client("iam"), aws.client("iam"))
        session.client.assert_called_once_with("iam")

    def test_session_uses_region(self):
        aws = AwsClients(region="us-west-2")
        self.assertEqual(aws.session.region_name, "us-west-2")

    def test_dispatch_table(self):
        self.assertEqual(
            sorted(CHECKABLE_RESOURCES),
            [
                "aws_cloudwatch_log_group",
                "aws_ecr_lifecycle_policy",
                "aws_ecr_repository",
                "aws_eks_cluster",
                "aws_iam_instance_profile",
                "aws_iam_policy",
                "aws_iam_role",
            ]
        )


if __name__ == "__main__":
    unittest.main()
