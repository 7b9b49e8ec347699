"""terraport command line interface

Finds resources a Terraform plan wants to create that already exist in AWS
and prints the ``terraform import`` commands that adopt them, or deletes them
with ``--delete``.

Usage:
    terraform plan -out=plan.out
    terraport drill -p plan.out -v
    terraport drill --plan-json plan.json --onepassword
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from terraport import __version__
from terraport.config import DrillOptions
from terraport.drill import DrillError, drill
from terraport.parse import check_terraform_initialised

log = logging.getLogger("terraport.cli")

NOT_INITIALISED = "Terraform is not initialised in this directory. Please run `terraform init` first."
NO_PLAN_FILE = "No plan file found. Please create a terraform plan json first."


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='terraport', description='CLI to auto import terraform resources into state'
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    subparsers = parser.add_subparsers(dest='command')

    drill_parser = subparsers.add_parser(
        'drill', help='Drill down into specific terraform resource/module'
    )
    drill_parser.add_argument('-p', '--planfile', type=Path, default=Path('plan.out'),
                              help='Plan file to parse (default: plan.out)')
    drill_parser.add_argument('--plan-json', type=Path,
                              help='Use a plan already rendered with terraform show -json')
    drill_parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')
    drill_parser.add_argument('-d', '--delete', action='store_true',
                              help='Delete resources that already exist')
    drill_parser.add_argument('-o', '--onepassword', action='store_true',
                              help='Use 1Password for secrets')
    drill_parser.add_argument('--output', action='store_true',
                              help='Explain each import command before printing it')
    drill_parser.add_argument('--region', help='AWS region (default: $AWS_DEFAULT_REGION or eu-west-1)')
    drill_parser.add_argument('--account-id', help='AWS account id used in IAM policy ARNs')
    drill_parser.add_argument('--env-file', default='.env', help='Env file passed to op run')
    drill_parser.add_argument('--terraform-bin', default='terraform', help='Terraform executable')
    drill_parser.add_argument('--save-json', action='store_true',
                              help='Also write the rendered plan to <planfile>.json')
    return parser


def options_from_args(args: argparse.Namespace) -> DrillOptions:
    return DrillOptions(
        verbose=args.verbose,
        delete=args.delete,
        onepassword=args.onepassword,
        output=args.output,
        region=args.region,
        account_id=args.account_id,
        op_env_file=args.env_file,
        terraform_bin=args.terraform_bin,
    )


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    # botocore is chatty at debug level
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def run_drill(args: argparse.Namespace) -> int:
    options = options_from_args(args)
    configure_logging(options.verbose)

    planfile = None
    save_json = None
    if args.plan_json and args.save_json:
        log.warning("--save-json has no effect with --plan-json; the plan is already JSON")
    if not args.plan_json:
        if not check_terraform_initialised(Path.cwd()):
            print(NOT_INITIALISED, file=sys.stderr)
            return 1
        planfile = args.planfile.resolve()
        if not planfile.exists():
            print(NO_PLAN_FILE, file=sys.stderr)
            return 1
        if args.save_json:
            save_json = planfile.with_name(f"{planfile.name}.json")

    try:
        report = drill(options, planfile=planfile, plan_json=args.plan_json, save_json=save_json)
    except DrillError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if any(not r.succeeded for r in report.remediations):
        return 1
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == 'drill':
        return run_drill(args)

    parser.print_help()
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
