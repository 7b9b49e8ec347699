"""Plan-to-action pipeline.

Loads a plan, keeps the resources Terraform is about to create, runs the
matching handler for each and prints the import commands they produce.
"""

import logging
from pathlib import Path
from typing import Optional

from terraport.config import DrillOptions
from terraport.handlers import CHECKABLE_RESOURCES, AwsClients
from terraport.models import DrillReport, Plan
from terraport.parse import TerraformPlanResult, load_plan_json, save_plan_json, show_plan

log = logging.getLogger("terraport.drill")


class DrillError(RuntimeError):
    """Raised when the plan cannot be loaded."""


def check_resources(plan: Plan, options: DrillOptions, aws: Optional[AwsClients] = None) -> DrillReport:
    """Check every planned creation against AWS and collect remediations.

    Args:
        plan: Parsed Terraform plan
        options: Drill switches (verbose, delete, onepassword, output)
        aws: Client holder; created for the configured region when omitted

    Returns:
        DrillReport with the remediations and the unsupported resource types
    """
    report = DrillReport()
    to_create = plan.creations()

    if not to_create:
        if options.verbose:
            print("No resources to create")
        return report

    for change in to_create:
        handler = CHECKABLE_RESOURCES.get(change.type)
        if handler is None:
            if change.type not in report.unsupported_types:
                report.unsupported_types.append(change.type)
            continue

        if options.verbose:
            print(f"Checking: {change.label}")
        if aws is None:
            aws = AwsClients(region=options.resolved_region())

        report.checked.append(change.address)
        remediation = handler(change, options, aws)
        if remediation is None:
            continue
        report.remediations.append(remediation)
        if remediation.command:
            print(remediation.command)

    if report.unsupported_types and options.verbose:
        print("\nThe following resource types are not currently supported:")
        for resource_type in report.unsupported_types:
            print(f"  {resource_type}")

    return report


def load_plan(options: DrillOptions, planfile: Optional[Path] = None, plan_json: Optional[Path] = None,
              save_json: Optional[Path] = None) -> Plan:
    """Load a plan from rendered JSON or a binary plan file."""
    if plan_json:
        result = load_plan_json(plan_json)
    elif planfile:
        result = show_plan(planfile, terraform_bin=options.terraform_bin)
    else:
        raise DrillError("Either a plan file or a plan JSON file is required")

    if result.error:
        if result.stderr:
            log.debug("terraform stderr: %s", result.stderr)
        raise DrillError(result.error)

    if save_json:
        save_plan_json(result, save_json)

    return _parse_plan(result)


def _parse_plan(result: TerraformPlanResult) -> Plan:
    if not isinstance(result.json_plan, dict):
        raise DrillError("Plan JSON must be an object")
    try:
        return Plan.from_json(result.json_plan)
    except ValueError as e:
        raise DrillError(f"Unrecognised plan format: {e}") from e


def drill(options: DrillOptions, planfile: Optional[Path] = None, plan_json: Optional[Path] = None,
          save_json: Optional[Path] = None, aws: Optional[AwsClients] = None) -> DrillReport:
    """Load a plan and check its creations."""
    plan = load_plan(options, planfile=planfile, plan_json=plan_json, save_json=save_json)
    log.debug("Loaded plan with %d resource changes", len(plan.resource_changes))
    return check_resources(plan, options, aws)
