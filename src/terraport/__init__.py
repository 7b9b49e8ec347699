"""Import AWS resources that already exist into Terraform state."""

__version__ = "0.0.1"
