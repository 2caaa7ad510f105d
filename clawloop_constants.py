"""Shared constants for clawloop.

Import-safe module with no dependencies -- can be imported from anywhere
without risk of circular imports.
"""

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
OPENROUTER_AUTH_KEY_PATH = "/auth/key"

ANTHROPIC_BASE_URL = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_SETUP_TOKEN_PREFIX = "sk-ant-oat01-"
ANTHROPIC_MAX_TOKENS = 4096

OPENAI_BASE_URL = "https://api.openai.com/v1"
OLLAMA_BASE_URL = "http://localhost:11434/v1"

# HTTP client timeouts (seconds)
HTTP_TIMEOUT = 120.0
HTTP_CONNECT_TIMEOUT = 10.0

# Tool-call wire protocol
TOOL_CALL_START = "<tool_call>"
TOOL_CALL_END = "</tool_call>"

MAX_TOOL_ITERATIONS = 10
MAX_HISTORY_MESSAGES = 50
TOKEN_CHANNEL_CAPACITY = 64

DEFAULT_PROVIDER = "openrouter"
DEFAULT_MODEL = "anthropic/claude-sonnet-4"
DEFAULT_TEMPERATURE = 0.7
