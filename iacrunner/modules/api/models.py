"""
iacrunner wire models.

These models define the execution config the control plane hands to a
run. Field names follow the control plane's camelCase JSON; Python code
uses the snake_case attribute names.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Enums


class Operation(str, Enum):
    """Terminal IaC operation of a run."""

    PLAN = "plan"
    APPLY = "apply"
    DESTROY = "destroy"


class RunStatus(str, Enum):
    """Status values reported to the control plane."""

    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Stream(str, Enum):
    """Captured output stream."""

    STDOUT = "stdout"
    STDERR = "stderr"


# Execution Config (API Input)


class WireModel(BaseModel):
    """Base model accepting both alias and attribute names."""

    model_config = ConfigDict(populate_by_name=True)


class SourceConfig(WireModel):
    """Where the IaC source lives."""

    type: str = Field(default="git", description="Source type")
    git_repo: str = Field(default="", alias="gitRepo")
    git_ref: str = Field(default="", alias="gitRef")
    working_directory: str = Field(
        default="", alias="workingDirectory", description="Subdirectory inside the repo"
    )


class Variable(WireModel):
    """An input variable value."""

    value: Any = None
    sensitive: bool = False


class StateBackendConfig(WireModel):
    """State backend block written as a backend override."""

    type: str
    config: Dict[str, Any] = Field(default_factory=dict)


class CallbackURLs(WireModel):
    """Callback paths, relative to the API base URL."""

    status_url: str = Field(default="", alias="statusUrl")
    logs_url: str = Field(default="", alias="logsUrl")
    plan_url: str = Field(default="", alias="planUrl")
    outputs_url: str = Field(default="", alias="outputsUrl")


class ExecutionConfig(WireModel):
    """Full execution config fetched from the control plane."""

    run_id: str = Field(default="", alias="runId")
    operation: Operation
    terraform_version: str = Field(default="", alias="terraformVersion")
    source: SourceConfig = Field(default_factory=SourceConfig)
    variables: Dict[str, Variable] = Field(default_factory=dict)
    upstream_outputs: Dict[str, Any] = Field(default_factory=dict, alias="upstreamOutputs")
    env_vars: Dict[str, Variable] = Field(default_factory=dict, alias="envVars")
    state_backend: Optional[StateBackendConfig] = Field(default=None, alias="stateBackend")
    callbacks: CallbackURLs = Field(default_factory=CallbackURLs)

    @field_validator("variables", "upstream_outputs", "env_vars", mode="before")
    @classmethod
    def null_as_empty(cls, v):
        """Treat JSON null maps as empty."""
        return {} if v is None else v
