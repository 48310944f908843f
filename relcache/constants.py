"""relcache constants and default configuration values."""

# Provider identity
PROVIDER_ID = "aws"
HEALTH_TYPE = "AmazonWebServices"

# Key codec
KEY_DELIMITER = ":"
KEY_WILDCARD = "*"

# Server group lifecycle / instance health strings
ACTIVE_LIFECYCLE_STATE = "Active"
INACTIVE_LIFECYCLE_STATE = "Inactive"
HEALTHY_STATUS = "Healthy"

# Auto Scaling processes whose suspension takes a group out of service
DISABLING_PROCESSES = ("Launch", "AddToLoadBalancer")

# Provider timestamp format (minute precision, UTC)
PROVIDER_TIME_FORMAT = "%Y-%m-%dT%H:%MZ"

# Scheduling
DEFAULT_REFRESH_INTERVAL = 60  # seconds
DEFAULT_AGENT_TIMEOUT = 300  # seconds
DEFAULT_MAX_AGENT_WORKERS = 8
DEFAULT_AUX_FETCH_WORKERS = 4

# Pagination
DEFAULT_PAGE_SIZE = 50

# Neo4j batching
NEO4J_BATCH_SIZE = 500
