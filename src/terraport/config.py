"""Runtime options for the drill command."""

import os
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_REGION = "eu-west-1"
OP_RUN_PREFIX = "op run --env-file={env_file} --"


class DrillOptions(BaseModel):
    """Switches controlling how existing resources are reported or removed."""
    verbose: bool = Field(False, description="Print progress and unsupported resource types")
    delete: bool = Field(False, description="Delete resources that already exist instead of importing")
    onepassword: bool = Field(False, description="Wrap import commands with 1Password's op run")
    output: bool = Field(False, description="Print an explanation above each import command")
    region: Optional[str] = None
    account_id: Optional[str] = None
    op_env_file: str = ".env"
    terraform_bin: str = "terraform"

    def resolved_region(self) -> str:
        return self.region or os.environ.get("AWS_DEFAULT_REGION") or DEFAULT_REGION

    def import_command(self, address: str, identifier: str) -> str:
        command = f"terraform import '{address}' {identifier}"
        if self.onepassword:
            return f"{OP_RUN_PREFIX.format(env_file=self.op_env_file)} {command}"
        return command
