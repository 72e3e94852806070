"""
Input file materialization.

- terraform.tfvars.json: variables plus upstream outputs, owner-only
- backend.tf: state backend override
- secure_delete(): zero-fill then remove, for files holding secrets
"""

import json
import logging
import os
from typing import Any, Dict, Mapping, Optional

from iacrunner.errors import InputError
from iacrunner.modules.api.models import StateBackendConfig, Variable

logger = logging.getLogger("iacrunner.terraform")

TFVARS_FILE = "terraform.tfvars.json"
BACKEND_FILE = "backend.tf"

# Ordered keys written for S3-compatible stores (MinIO etc.)
_S3_LEADING_KEYS = ("bucket", "key", "region")
_S3_SKIP_FLAGS = (
    "skip_credentials_validation",
    "skip_requesting_account_id",
    "skip_metadata_api_check",
    "skip_region_validation",
    "use_path_style",
)
_S3_CREDENTIAL_KEYS = ("access_key", "secret_key")


def write_tfvars(
    work_dir: str,
    variables: Mapping[str, Variable],
    upstream_outputs: Optional[Mapping[str, Any]] = None,
) -> str:
    """
    Write variables and upstream outputs to terraform.tfvars.json.

    Upstream outputs win over variables with the same name.

    Returns:
        Path of the written file

    Raises:
        InputError: If the file cannot be written
    """
    tfvars: Dict[str, Any] = {key: variable.value for key, variable in variables.items()}
    tfvars.update(upstream_outputs or {})

    path = os.path.join(work_dir, TFVARS_FILE)
    try:
        data = json.dumps(tfvars, indent=2)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write(data)
        os.chmod(path, 0o600)
    except (TypeError, ValueError) as e:
        raise InputError(f"marshaling tfvars: {e}") from e
    except OSError as e:
        raise InputError(f"writing tfvars: {e}") from e

    return path


def secure_delete(path: str) -> None:
    """
    Overwrite a file with zeros of the same length, then remove it.

    A missing file is a no-op. Errors are logged, never raised: this runs
    during cleanup.
    """
    try:
        size = os.path.getsize(path)
    except OSError:
        return

    try:
        with open(path, "r+b") as f:
            f.write(b"\x00" * size)
            f.flush()
            os.fsync(f.fileno())
    except OSError as e:
        logger.warning(f"Failed to zero {os.path.basename(path)}: {e}")

    try:
        os.remove(path)
    except OSError as e:
        logger.warning(f"Failed to remove {os.path.basename(path)}: {e}")


def write_backend_override(work_dir: str, backend: Optional[StateBackendConfig]) -> Optional[str]:
    """
    Write backend.tf for the given state backend; no-op without one.

    Returns:
        Path of the written file, or None

    Raises:
        InputError: If the file cannot be written
    """
    if backend is None:
        return None

    if backend.type == "s3":
        content = render_s3_backend(backend.config)
    else:
        content = render_generic_backend(backend.type, backend.config)

    path = os.path.join(work_dir, BACKEND_FILE)
    try:
        with open(path, "w") as f:
            f.write(content)
    except OSError as e:
        raise InputError(f"creating {BACKEND_FILE}: {e}") from e

    return path


def render_s3_backend(config: Mapping[str, Any]) -> str:
    """S3-compatible backend block with the S3 skip flags set."""
    lines = ["terraform {", '  backend "s3" {']

    for key in _S3_LEADING_KEYS:
        if key in config:
            lines.append(_assignment(key, hcl_value(config[key])))
    if "endpoint" in config:
        lines.append(_assignment("endpoints", f"{{ s3 = {hcl_value(config['endpoint'])} }}"))

    for flag in _S3_SKIP_FLAGS:
        lines.append(_assignment(flag, "true"))

    for key in _S3_CREDENTIAL_KEYS:
        if key in config:
            lines.append(_assignment(key, hcl_value(config[key])))

    lines.extend(["  }", "}"])
    return "\n".join(lines) + "\n"


def render_generic_backend(backend_type: str, config: Mapping[str, Any]) -> str:
    """Backend block for any type, keys sorted for deterministic output."""
    lines = ["terraform {", f"  backend {json.dumps(backend_type)} {{"]
    for key in sorted(config):
        lines.append(f"    {key} = {hcl_value(config[key])}")
    lines.extend(["  }", "}"])
    return "\n".join(lines) + "\n"


def hcl_value(value: Any) -> str:
    """
    Format a JSON-decoded value as an HCL literal.

    Booleans and numbers are bare, integral floats lose the decimal point,
    everything else is a quoted string.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return f"{value:g}"
    if isinstance(value, str):
        return json.dumps(value)
    return json.dumps(str(value))


def _assignment(key: str, value: str) -> str:
    return f"    {key:<27} = {value}"
