"""
Terraform Module - Black Box Interface

Purpose: Locate the tool binary and materialize its input files
Interface: resolve_version(), write_tfvars(), write_backend_override(), secure_delete()
Hidden: PATH/cache/download lookup order, HCL rendering, file permissions
"""

from .inputs import (
    BACKEND_FILE,
    TFVARS_FILE,
    hcl_value,
    secure_delete,
    write_backend_override,
    write_tfvars,
)
from .manager import DEFAULT_VERSION, download_url, installed_version, resolve_version

__all__ = [
    "BACKEND_FILE",
    "DEFAULT_VERSION",
    "TFVARS_FILE",
    "download_url",
    "hcl_value",
    "installed_version",
    "resolve_version",
    "secure_delete",
    "write_backend_override",
    "write_tfvars",
]
