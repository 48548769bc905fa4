from enum import StrEnum


class BlueprintId(StrEnum):
    """The closed set of architectural templates an intent can be classified into."""

    SAAS_STARTER = "saas-starter"
    FORM_TO_DB = "form-to-db"
    COMMUNITY_MINI = "community-mini"
    MARKETPLACE_LITE = "marketplace-lite"
    STATIC_LANDING = "static-landing"


class Audience(StrEnum):
    PERSONAL = "personal"
    COMMUNITY = "community"
    BUSINESS = "business"
    NONPROFIT = "nonprofit"
    EDUCATION = "education"


class AuthMode(StrEnum):
    NONE = "none"
    MAGIC_LINK = "magic_link"
    SOCIAL_LOGIN = "social_login"
    EMAIL_PASSWORD = "email_password"


class PaymentModel(StrEnum):
    NONE = "none"
    ONE_TIME = "one_time"
    SUBSCRIPTION = "subscription"
    USAGE = "usage"


class FieldType(StrEnum):
    STRING = "string"
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    EMAIL = "email"
    URL = "url"
    IMAGE = "image"
    JSON = "json"


class TaskType(StrEnum):
    """Kinds of pipeline steps a task graph can contain."""

    INIT_REPO = "init_repo"
    PROVISION_BACKENDS = "provision_backends"
    CONFIG_ENV = "config_env"
    SCAFFOLD_PAGES = "scaffold_pages"
    COMMIT_PREVIEW = "commit_preview"
    DEPLOY_PROD = "deploy_prod"
    VERIFY_SMOKE = "verify_smoke"


class TaskStatus(StrEnum):
    """
    Lifecycle states of a task.

    Attributes:
        PENDING: Created by the graph builder, not yet considered by the executor.
        RUNNING: The executor is invoking the task's operation.
        COMPLETED: The operation returned successfully.
        FAILED: The operation raised after exhausting its retry budget.
        SKIPPED: The task never ran, either because a dependency did not
            complete or because the run was aborted before reaching it.
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_TASK_STATUSES


class ServiceFamily(StrEnum):
    """External service families reachable through the adapter layer."""

    VERCEL = "vercel"
    SUPABASE = "supabase"
    CLERK = "clerk"
    STRIPE = "stripe"


class Environment(StrEnum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


TERMINAL_TASK_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.SKIPPED})

# Allowed status moves; anything else is a TaskStateError.
TASK_STATUS_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset({TaskStatus.RUNNING, TaskStatus.SKIPPED}),
    TaskStatus.RUNNING: frozenset({TaskStatus.COMPLETED, TaskStatus.FAILED}),
    TaskStatus.COMPLETED: frozenset(),
    TaskStatus.FAILED: frozenset(),
    TaskStatus.SKIPPED: frozenset(),
}

# Task types whose operations talk to slow/unreliable platforms and get the retry policy.
FLAKY_TASK_TYPES = frozenset({TaskType.PROVISION_BACKENDS, TaskType.DEPLOY_PROD})

# (task id, task type) in declaration order; each step depends on the one before it.
DEFAULT_PIPELINE_STEPS: tuple[tuple[str, TaskType], ...] = (
    ("init", TaskType.INIT_REPO),
    ("provision", TaskType.PROVISION_BACKENDS),
    ("config", TaskType.CONFIG_ENV),
    ("scaffold", TaskType.SCAFFOLD_PAGES),
    ("commit", TaskType.COMMIT_PREVIEW),
    ("deploy", TaskType.DEPLOY_PROD),
    ("verify", TaskType.VERIFY_SMOKE),
)

# Capability tags the classifier cares about
CAPABILITY_COLLECT_DATA = "collect_data"
CAPABILITY_AUTH = "auth"
CAPABILITY_CRUD = "crud"
COMMUNITY_CAPABILITIES = frozenset({"community", "notifications", "social"})

LAYR_DEFAULT_MAX_RETRIES = 3
LAYR_DEFAULT_RETRY_BACKOFF = 1.0
LAYR_DEFAULT_MAX_BACKOFF = 30.0
LAYR_DEFAULT_PROVISIONING_TIMEOUT = 60.0
LAYR_DEFAULT_DEPLOYMENT_TIMEOUT = 120.0
LAYR_DEFAULT_VERIFICATION_TIMEOUT = 30.0
LAYR_DEFAULT_OUTPUT_DIR = "apps/generated"
LAYR_DEFAULT_SETTINGS_FILE = "layr.yaml"
LAYR_SUPPORTED_INTENT_EXTENSIONS = (".json", ".yaml", ".yml")

LAYR_DEFAULT_LOGGER = {"directory": ".layr/logs", "level": "INFO"}

# Credential values people leave in templates; rejected by settings validation.
PLACEHOLDER_CREDENTIAL_VALUES = frozenset({"YOUR_API_KEY_HERE", "CHANGEME", "TODO"})

# Keywords whose values are masked in log output
PROTECTED_KEYWORDS = [
    "password",
    "passwd",
    "secret",
    "secret_key",
    "secretKey",
    "service_key",
    "serviceKey",
    "anon_key",
    "anonKey",
    "publishable_key",
    "publishableKey",
    "webhook_secret",
    "token",
    "access_token",
    "api_key",
    "apikey",
    "authorization",
    "bearer",
    "client_secret",
    "signing_key",
]
