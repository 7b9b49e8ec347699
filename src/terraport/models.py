"""Terraform Plan Models

Pydantic models for the parts of a ``terraform show -json`` document that
terraport reads, plus the records produced while checking a plan.

Only ``resource_changes[].change.actions`` and ``.after`` drive behaviour;
everything else in the plan is carried along for reporting or ignored.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class Change(BaseModel):
    """The planned change for a single resource."""
    actions: List[str] = Field(default_factory=list, description="Terraform actions, e.g. ['create']")
    before: Optional[Dict[str, Any]] = Field(None, description="Attributes before the change")
    after: Optional[Dict[str, Any]] = Field(None, description="Attributes after the change")


class ResourceChange(BaseModel):
    """One entry of the plan's ``resource_changes`` list."""
    address: str = Field(..., description="Full resource address, e.g. module.x.aws_iam_role.this")
    type: str = Field(..., description="Terraform resource type")
    name: str = Field("", description="Resource name within its module")
    mode: str = Field("managed", description="managed or data")
    module_address: Optional[str] = None
    index: Optional[Union[int, str]] = None
    change: Change = Field(default_factory=Change)

    @property
    def is_creation(self) -> bool:
        return "create" in self.change.actions

    @property
    def label(self) -> str:
        return f"{self.type}.{self.name}"

    def attribute(self, key: str) -> Any:
        """Return ``key`` from the planned attributes, or None when unknown."""
        if not self.change.after:
            return None
        return self.change.after.get(key)


class Plan(BaseModel):
    """A Terraform plan as rendered by ``terraform show -json``."""
    format_version: Optional[str] = None
    terraform_version: Optional[str] = None
    resource_changes: List[ResourceChange] = Field(default_factory=list)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> 'Plan':
        # null resource_changes shows up for empty configurations
        if data.get("resource_changes") is None:
            data = {**data, "resource_changes": []}
        return cls.model_validate(data)

    def creations(self) -> List[ResourceChange]:
        """Resource changes that create something, in plan order."""
        return [change for change in self.resource_changes if change.is_creation]


class RemediationAction(str, Enum):
    IMPORT = "import"
    DELETE = "delete"


class Remediation(BaseModel):
    """What was done about a resource that already exists."""
    address: str
    resource_type: str
    identifier: str = Field(..., description="ID passed to terraform import or deleted")
    action: RemediationAction
    command: Optional[str] = Field(None, description="Shell command to run for imports")
    succeeded: bool = True


class DrillReport(BaseModel):
    """Outcome of checking every creation in a plan."""
    checked: List[str] = Field(default_factory=list)
    remediations: List[Remediation] = Field(default_factory=list)
    unsupported_types: List[str] = Field(default_factory=list)

    @property
    def commands(self) -> List[str]:
        return [r.command for r in self.remediations if r.command]
