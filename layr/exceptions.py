"""
Layr exception hierarchy.

Every error raised by the orchestration engine derives from LayrError. Each
error carries a stable `code`, an optional `context` dict for diagnostics, and a
`recoverable` flag the executor's retry policy consults: recoverable errors are
eligible for another attempt, non-recoverable ones abort immediately.
"""

import json
from typing import Any

###############################################################################
# ROOT EXCEPTION
###############################################################################


class LayrError(Exception):
    """
    Root exception class for all Layr errors.

    It should not be raised directly but rather inherited from.
    """

    code = "LAYR_ERROR"
    recoverable = False

    def __init__(self, message: str = "", context: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


###############################################################################
# INPUT / CONFIGURATION EXCEPTIONS
###############################################################################


class IntentValidationError(LayrError):
    """Raised when an intent record does not satisfy the Intent schema."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str = "", errors: list[str] | None = None):
        self.errors = errors or []
        super().__init__(message, context={"errors": self.errors} if self.errors else None)


class ConfigurationError(LayrError):
    """
    Missing or invalid credentials/configuration.

    Never retried: another attempt with the same credentials cannot succeed.
    """

    code = "CONFIGURATION_ERROR"


class SettingsError(ConfigurationError):
    """Raised when Layr settings cannot be loaded or validated."""

    code = "SETTINGS_ERROR"

    def __init__(self, message: str = "", setting: str = ""):
        prefix = f"Setting '{setting}': " if setting else ""
        super().__init__(f"{prefix}{message}")
        self.setting = setting


###############################################################################
# PROVIDER EXCEPTIONS
###############################################################################


class ProviderError(LayrError):
    """Base for failures talking to an external service family."""

    code = "PROVIDER_ERROR"
    recoverable = True

    def __init__(self, message: str = "", service: str = "", context: dict[str, Any] | None = None):
        prefix = f"{service}: " if service else ""
        super().__init__(f"{prefix}{message}", context=context)
        self.service = service


class ProvisioningError(ProviderError):
    code = "PROVISIONING_ERROR"


class DeploymentError(ProviderError):
    code = "DEPLOYMENT_ERROR"


class OperationTimeoutError(ProviderError):
    """An adapter operation exceeded its timeout budget."""

    code = "TIMEOUT_ERROR"


class ChannelError(ProviderError):
    """The managed channel answered, but not with something usable."""

    code = "CHANNEL_ERROR"


class ChannelUnavailableError(ChannelError):
    """The managed channel is not available for the requested service family."""

    code = "CHANNEL_UNAVAILABLE"


###############################################################################
# GRAPH / EXECUTION EXCEPTIONS
###############################################################################


class GraphError(LayrError):
    """Raised for structurally invalid task graphs (duplicates, dangling refs, cycles)."""

    code = "GRAPH_ERROR"


class TaskStateError(LayrError):
    """Raised on an illegal task status transition."""

    code = "TASK_STATE_ERROR"

    def __init__(self, message: str = "", task_id: str = ""):
        prefix = f"Task '{task_id}': " if task_id else ""
        super().__init__(f"{prefix}{message}")
        self.task_id = task_id


class TaskExecutionError(LayrError):
    """
    The single top-level error a pipeline run reports when a task fails.

    Attributes:
        task_id: Identity of the first failed task.
        reason: The failed task's error message.
    """

    code = "TASK_EXECUTION_ERROR"

    def __init__(self, task_id: str, reason: str):
        super().__init__(f"Task '{task_id}' failed: {reason}", context={"task_id": task_id})
        self.task_id = task_id
        self.reason = reason


def is_recoverable(error: BaseException) -> bool:
    """Errors outside the Layr hierarchy are assumed transient."""
    if isinstance(error, LayrError):
        return error.recoverable
    return True


def format_error(error: BaseException) -> str:
    """Render an error as a single diagnostic string for logs and CLI output."""
    if isinstance(error, LayrError):
        rendered = f"[{error.code}] {error}"
        if error.context:
            rendered += f"\nContext: {json.dumps(error.context, indent=2, default=str)}"
        return rendered
    return f"{error.__class__.__name__}: {error}"
