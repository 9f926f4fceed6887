"""Constants for vault-sync."""

# Vault marker directory
VAULT_SYNC_DIR = ".vault-sync"

# Files inside VAULT_SYNC_DIR
CONFIG_FILE = "config.yaml"
LOCK_FILE = "sync.lock"

# Project-level ignore file (gitignore syntax)
IGNORE_FILE = ".vaultsyncignore"

# Text payloads are UTF-8; surrogateescape keeps undecodable bytes intact
TEXT_ENCODING = "utf-8"
TEXT_ERRORS = "surrogateescape"

# The remote store cannot hold zero-byte objects
EMPTY_FILE_PLACEHOLDER = "\n"

# Extension allow-lists; anything unlisted is treated as text
TEXT_EXTENSIONS = frozenset({
    "md", "markdown", "txt", "canvas", "json", "yaml", "yml", "toml",
    "csv", "tsv", "css", "js", "ts", "html", "htm", "xml", "svg", "tex",
    "bib", "org", "rst", "ini", "cfg", "py", "sh",
})

BINARY_EXTENSIONS = frozenset({
    "png", "jpg", "jpeg", "gif", "bmp", "webp", "ico", "tif", "tiff", "avif",
    "pdf", "mp3", "wav", "ogg", "flac", "m4a", "webm", "mp4", "mov", "mkv",
    "zip", "gz", "tar", "7z", "epub", "docx", "xlsx", "pptx", "woff", "woff2",
    "ttf", "otf",
})

# Remote defaults
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_BRANCH = "main"
DEFAULT_AUTO_SYNC_INTERVAL = 300  # seconds

# Credential environment variables, in lookup order
TOKEN_ENV_VARS = ("VAULT_SYNC_TOKEN", "GITHUB_TOKEN")

# Version
VAULT_SYNC_VERSION = "0.1.0"
