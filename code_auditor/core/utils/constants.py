"""Constants used throughout the application."""

# Repository traversal defaults
DEFAULT_IGNORED_REPO_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        "__pycache__",
        "node_modules",
        ".venv",
        "venv",
        "target",
        "dist",
        "build",
        "vendor",
        ".idea",
        ".vscode",
    }
)

DEFAULT_EXTENSIONS = (
    "rs", "py", "js", "ts", "jsx", "tsx", "go", "java", "c", "cpp", "h", "hpp", "cs",
    "rb", "php", "swift", "kt", "scala", "vue", "svelte",
)

DEFAULT_EXCLUDE_PATTERNS = (
    ".git",
    "target",
    "node_modules",
    "vendor",
    "dist",
    "build",
    "__pycache__",
    ".venv",
    "venv",
    ".idea",
    ".vscode",
    "*.min.js",
    "*.min.css",
    "package-lock.json",
    "Cargo.lock",
    "yarn.lock",
)

# Model endpoint defaults
DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_MODEL = "deepseek-coder:33b"
DEFAULT_TEMPERATURE = 0.1
DEFAULT_SESSION_TIMEOUT = 600.0
DEFAULT_REQUEST_TIMEOUT = 120.0

# Agent loop limits
DEFAULT_MAX_ITERATIONS = 50
DEFAULT_MAX_CONTEXT_MESSAGES = 10
MAX_INSTRUCTION_FILES = 50

# Tool execution limits
DEFAULT_READ_MAX_LINES = 200
MAX_READ_LINES = 500
DEFAULT_LIST_MAX_ENTRIES = 200
DEFAULT_SEARCH_MAX_RESULTS = 50
MAX_TOOL_OUTPUT_CHARS = 12_000
MAX_SCANNED_FILE_BYTES = 1_000_000

# Scanner / single-call defaults
DEFAULT_MAX_FILES = 100
DEFAULT_CONCURRENCY = 4
DEFAULT_MAX_CHUNK_LINES = 4000

# Issue normalization
MAX_TITLE_LENGTH = 120
DEFAULT_CATEGORY = "General"
UNTITLED_ISSUE = "Untitled issue"
UNKNOWN_FILE = "unknown"
