import copy
import logging
import os
from typing import Any

import yaml
from dotenv import load_dotenv
from rich.console import Console

load_dotenv()
console = Console()
logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "congress": {
        "base_url": "https://api.congress.gov/v3",
        "key_env_var": "CONGRESS_API_KEY",
    },
    "lda": {
        "base_url": "https://lda.senate.gov/api/v1",
        "key_env_var": "LDA_API_KEY",
    },
    "fec": {
        "base_url": "https://api.open.fec.gov/v1",
        "key_env_var": "FEC_API_KEY",
        "fallback_key": "DEMO_KEY",
    },
    "http": {
        "timeout": 20.0,
        "user_agent": "policy-dna/0.1 (legislative transparency research)",
    },
    "llm": {
        "provider": "gemini",
        "gemini": {"model": "gemini-1.5-flash"},
        "openai": {"model": "gpt-4o-mini"},
        "temperature": 0.2,
        "max_output_tokens": 2048,
    },
    "search": {
        "page_size": 20,
        "max_pages": 3,
        "max_records": 60,
        "min_relevance": 0.2,
        "max_hits": 5,
    },
    "dna": {
        "max_pages": 3,
        "max_blame": 20,
        "max_actions": 25,
    },
    "influence": {
        "max_terms": 5,
        "max_lobbying": 10,
        "page_size": 10,
    },
    "orchestrator": {
        "request_timeout": 90.0,
    },
}

# Credentials checked by the health endpoint. Values are never reported.
REQUIRED_ENV: list[tuple[str, str]] = [
    ("CONGRESS_API_KEY", "Congress.gov API key for bill search and metadata"),
    ("FEC_API_KEY", "OpenFEC API key for campaign finance lookups"),
]

OPTIONAL_ENV: list[tuple[str, str]] = [
    ("LDA_API_KEY", "Senate LDA API token (raises anonymous rate limits)"),
    ("GOOGLE_API_KEY", "Gemini API key for grounded answers and moderation"),
    ("VERTEX_PROJECT_ID", "Google Cloud project id that hosts Vertex AI"),
    ("VERTEX_LOCATION", "Vertex AI region (defaults to us-central1)"),
    ("VERTEX_GEMINI_MODEL", "Gemini model override (defaults to gemini-1.5-flash)"),
    ("OPENAI_API_KEY", "OpenAI API key when llm.provider is openai"),
]


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: str = "config.yaml") -> dict[str, Any]:
    """
    From config.yaml, merged over DEFAULT_CONFIG so partial files work.

    Base URLs can also be overridden per source with CONGRESS_API_BASE_URL,
    LDA_API_BASE_URL and FEC_API_BASE_URL, and the Gemini model with
    VERTEX_GEMINI_MODEL.

    Args:
        config_path: Path to config file (default: config.yaml)

    Returns:
        Configuration dictionary
    """
    file_config: dict[str, Any] = {}
    try:
        with open(config_path, "r") as f:
            file_config = yaml.safe_load(f) or {}
    except FileNotFoundError:
        console.print(f"[dim]{config_path} not found. Using default config.[/dim]")
    except yaml.YAMLError as e:
        console.print(f"[red]Error parsing {config_path}: {e}. Using default config.[/red]")

    if not isinstance(file_config, dict):
        console.print(f"[red]{config_path} must contain a mapping. Using default config.[/red]")
        file_config = {}

    config = _deep_merge(DEFAULT_CONFIG, file_config)

    for source in ("congress", "lda", "fec"):
        override = os.getenv(f"{source.upper()}_API_BASE_URL")
        if override:
            config[source]["base_url"] = override.rstrip("/")

    model_override = os.getenv("VERTEX_GEMINI_MODEL", "").strip()
    if model_override:
        config["llm"]["gemini"]["model"] = model_override

    return config


def get_api_keys() -> dict[str, str]:
    return {
        "congress": os.getenv("CONGRESS_API_KEY", ""),
        "fec": os.getenv("FEC_API_KEY", ""),
        "lda": os.getenv("LDA_API_KEY", ""),
        "google": os.getenv("GOOGLE_API_KEY", ""),
        "openai": os.getenv("OPENAI_API_KEY", ""),
        "vertex_project": os.getenv("VERTEX_PROJECT_ID", ""),
        "vertex_location": os.getenv("VERTEX_LOCATION", "us-central1"),
    }


def inspect_environment() -> list[dict[str, Any]]:
    statuses = []
    for optional, entries in ((False, REQUIRED_ENV), (True, OPTIONAL_ENV)):
        for name, description in entries:
            statuses.append({
                "name": name,
                "description": description,
                "optional": optional,
                "present": bool(os.getenv(name, "").strip()),
            })
    return statuses


def log_environment_summary() -> list[dict[str, Any]]:
    statuses = inspect_environment()
    missing_required = [s for s in statuses if not s["present"] and not s["optional"]]
    missing_optional = [s for s in statuses if not s["present"] and s["optional"]]

    if not missing_required:
        logger.info("All required API credentials detected.")
    else:
        logger.warning(
            "Missing required environment variables: %s",
            ", ".join(f"{s['name']} ({s['description']})" for s in missing_required),
        )

    if missing_optional:
        logger.info(
            "Optional integrations not configured: %s",
            ", ".join(f"{s['name']} ({s['description']})" for s in missing_optional),
        )

    return statuses
