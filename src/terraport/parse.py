"""Terraform Plan Loader Module

This module turns a saved Terraform plan into the JSON document terraport
works from. It either renders a binary plan file with ``terraform show -json``
or reads a JSON plan that was rendered earlier.

Requirements:
    - Terraform CLI installed and in PATH (binary plan files only)
    - An initialised working directory (``terraform init`` has been run)

Usage:
    terraform plan -out=plan.out
    python parse.py plan.out --save plan.json

The module works by:
1. Checking the plan file exists
2. Running ``terraform show -json <planfile>``
3. Parsing stdout as JSON

Output Format:
    {
      "stdout": "...",
      "stderr": "",
      "json_plan": {"format_version": "1.2", "resource_changes": [...]},
      "return_code": 0,
      "error": null
    }

Error Handling:
    Failures never raise. A missing or unreadable plan file, a terraform
    binary that cannot be run, a non-zero exit status or output that is not
    JSON all come back as a TerraformPlanResult with ``error`` set and
    ``json_plan`` left empty.
"""

from dataclasses import dataclass
from pathlib import Path
import subprocess
import json
from typing import Optional, Dict, Any


@dataclass
class TerraformPlanResult:
    stdout: str
    stderr: str
    json_plan: Optional[Dict[str, Any]]
    return_code: int
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to a dictionary for serialization."""
        return {
            "stdout": self.stdout,
            "stderr": self.stderr,
            "json_plan": self.json_plan,
            "return_code": self.return_code,
            "error": self.error
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TerraformPlanResult':
        """Create a TerraformPlanResult from a dictionary."""
        return cls(
            stdout=data.get("stdout", ""),
            stderr=data.get("stderr", ""),
            json_plan=data.get("json_plan"),
            return_code=data.get("return_code", 0),
            error=data.get("error")
        )


def _failed(error: str, return_code: int = 1, stdout: str = "", stderr: str = "") -> TerraformPlanResult:
    return TerraformPlanResult(
        stdout=stdout,
        stderr=stderr,
        json_plan=None,
        return_code=return_code,
        error=error
    )


def check_terraform_initialised(directory: Path) -> bool:
    """Return True when ``terraform init`` has been run in ``directory``."""
    return (Path(directory) / ".terraform").exists()


def save_plan_result(result: TerraformPlanResult, output_file: Path) -> None:
    """Save TerraformPlanResult to a JSON file."""
    with open(output_file, 'w') as f:
        json.dump(result.to_dict(), f, indent=2)


def load_plan_result(input_file: Path) -> TerraformPlanResult:
    """Load TerraformPlanResult from a JSON file."""
    with open(input_file) as f:
        data = json.load(f)
    return TerraformPlanResult.from_dict(data)


def show_plan(planfile: Path, terraform_bin: str = "terraform", cwd: Optional[Path] = None) -> TerraformPlanResult:
    """Render a binary plan file to JSON with ``terraform show -json``."""
    planfile = Path(planfile)
    if not planfile.exists():
        return _failed(f"Plan file not found: {planfile}")

    try:
        show_process = subprocess.run(
            [terraform_bin, "show", "-json", str(planfile)],
            cwd=cwd,
            capture_output=True,
            text=True
        )
    except FileNotFoundError:
        return _failed(f"Executable not found: {terraform_bin}", return_code=127)
    except OSError as e:
        return _failed(f"Cannot run {terraform_bin}: {e}", return_code=126)

    if show_process.returncode != 0:
        return _failed(
            f"terraform show exited with code {show_process.returncode}",
            return_code=show_process.returncode,
            stdout=show_process.stdout,
            stderr=show_process.stderr
        )

    try:
        json_plan = json.loads(show_process.stdout)
    except json.JSONDecodeError as e:
        return _failed(
            f"Failed to parse JSON: {str(e)}",
            stdout=show_process.stdout,
            stderr=show_process.stderr
        )

    return TerraformPlanResult(
        stdout=show_process.stdout,
        stderr=show_process.stderr,
        json_plan=json_plan,
        return_code=0
    )


def save_plan_json(result: TerraformPlanResult, output_file: Path) -> None:
    """Write just the rendered plan, as ``terraform show -json > file`` would."""
    with open(output_file, 'w') as f:
        json.dump(result.json_plan, f, indent=2)


def load_plan_json(path: Path) -> TerraformPlanResult:
    """Read a plan rendered with ``terraform show -json``.

    Files written by save_plan_result are accepted too and unwrapped.
    """
    path = Path(path)
    if not path.exists():
        return _failed(f"Plan JSON not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        return _failed(f"Failed to read plan JSON: {e}")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        return _failed(f"Failed to parse JSON: {str(e)}", stdout=text)

    if isinstance(data, dict) and "json_plan" in data and "return_code" in data:
        return TerraformPlanResult.from_dict(data)

    return TerraformPlanResult(stdout=text, stderr="", json_plan=data, return_code=0)


def main():
    import sys
    import argparse

    parser = argparse.ArgumentParser(description='Render a Terraform plan file as JSON')
    parser.add_argument('planfile', type=Path, help='Binary plan file from terraform plan -out')
    parser.add_argument('--save', type=Path, help='Save plan result to JSON file')

    args = parser.parse_args()

    result = show_plan(args.planfile)

    if result.error:
        print(f"Error: {result.error}", file=sys.stderr)
        if result.stderr:
            print(f"Stderr: {result.stderr}", file=sys.stderr)
        sys.exit(1)

    if args.save:
        save_plan_result(result, args.save)
    else:
        print(json.dumps(result.json_plan, indent=2))


if __name__ == "__main__":
    main()
