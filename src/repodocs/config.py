"""Configuration loaded from environment variables."""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


# Paths
DATA_DIR: Path = Path(os.getenv("DATA_DIR", "./data"))

# Provider selection: "gemini" or "ollama"
LLM_PROVIDER: str = os.getenv("LLM_PROVIDER", "gemini").lower()

# Gemini
GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
GEMINI_MODEL: str = os.getenv("GEMINI_MODEL", "gemini-3-flash-preview")
EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "gemini-embedding-001")
EMBEDDING_DIMS: int = int(os.getenv("EMBEDDING_DIMS", "768"))

# Ollama
OLLAMA_BASE_URL: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_MODEL: str = os.getenv("OLLAMA_MODEL", "qwen2.5-coder:14b")
OLLAMA_EMBEDDING_MODEL: str = os.getenv("OLLAMA_EMBEDDING_MODEL", "nomic-embed-text")

# Timeouts (seconds)
LLM_TIMEOUT: float = float(os.getenv("LLM_TIMEOUT", "60"))
EMBED_TIMEOUT: float = float(os.getenv("EMBED_TIMEOUT", "15"))

# Indexing
CHUNK_SIZE: int = int(os.getenv("CHUNK_SIZE", "1000"))
CHUNK_OVERLAP: int = int(os.getenv("CHUNK_OVERLAP", "200"))
EMBED_CONCURRENCY: int = int(os.getenv("EMBED_CONCURRENCY", "1"))
MAX_FILE_BYTES: int = int(os.getenv("MAX_FILE_BYTES", "100000"))

# Remote repositories
MAX_REMOTE_FILES: int = int(os.getenv("MAX_REMOTE_FILES", "40"))
GIT_HISTORY_DEPTH: int = int(os.getenv("GIT_HISTORY_DEPTH", "50"))

# Server
HOST: str = os.getenv("HOST", "0.0.0.0")
PORT: int = int(os.getenv("PORT", "8000"))
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Derived paths
SESSION_DB_PATH: Path = DATA_DIR / "session.db"
CLONES_DIR: Path = DATA_DIR / "clones"


def get_clone_path(owner: str, repo: str) -> Path:
    """Return the local checkout directory for a GitHub repository."""
    return CLONES_DIR / f"{owner}__{repo}"
