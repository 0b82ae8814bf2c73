"""Shared constants used across the traceability packages."""
from __future__ import annotations

# Application version
VERSION: str = "1.0.0"

APP_NAME: str = "scenario-traceability"

# Supported test languages
SUPPORTED_LANGUAGES: list[str] = ["python", "typescript", "go", "java"]

# Hosted model providers for the semantic match oracle
SUPPORTED_ORACLE_PROVIDERS: list[str] = ["anthropic", "openai"]

# Catalogue keys
SERVICE_KEY: str = "service"
SCENARIO_CATEGORIES: list[str] = ["happy_case", "edge_case", "error_case", "security"]

# Markers appended to AI-suggested scenarios by the generator
AI_SCENARIO_MARKERS: tuple[str, ...] = ("✅", "\U0001f195")

# Path segments that never identify a resource
IGNORED_PATH_SEGMENTS: frozenset[str] = frozenset({"api", "rest"})

# Anthropic messages API
ANTHROPIC_API_VERSION: str = "2023-06-01"

# History
HISTORY_FILE_NAME: str = "snapshots.json"
DEFAULT_MAX_SNAPSHOTS: int = 30
