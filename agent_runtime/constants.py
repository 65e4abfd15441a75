"""Shared constants for Agent Runtime."""

APP_NAME = "Agent Runtime"
APP_VERSION = "0.1.0"

# Name/version advertised to tool servers during MCP initialization
CLIENT_NAME_PREFIX = "agent-os"
CLIENT_VERSION = "1.0.0"

# Logging defaults
LOG_DIR = "logs"
DEFAULT_LOG_LEVEL = "INFO"

# Session guardrails
MAX_HISTORY_MESSAGES = 40
DEFAULT_MAX_TURNS = 50
DEFAULT_ESCALATION_THRESHOLD = 3
MAX_TOKENS_CEILING = 4096  # upper bound for max_response_length
DEFAULT_MAX_TOOL_ROUNDTRIPS = 10

# Tool naming
TOOL_NAME_SEPARATOR = "__"

# Tool execution sandbox defaults
DEFAULT_MAX_EXECUTION_MS = 30_000
DEFAULT_MAX_OUTPUT_SIZE = 102_400

# Tool server connection timeouts
MCP_INIT_TIMEOUT = 15  # seconds for MCP session initialization
CAP_FETCH_TIMEOUT = 10.0  # seconds for a tool list fetch
CLOSE_TIMEOUT = 5.0  # seconds to wait for a connection to shut down

# Proxy used to cut off network access for sandboxed stdio servers
BLACKHOLE_PROXY = "http://0.0.0.0:0"
