import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class Settings:
    fleet_listing_file: str = os.getenv("FLEET_LISTING_FILE", "data/flights.json")
    fleet_records_dir: str = os.getenv("FLEET_RECORDS_DIR", "data/flights")
    prompts_file: str = os.getenv("PROMPTS_FILE", "data/prompts.json")
    logs_dir: str = os.getenv("LOGS_DIR", "data/logs")
    azure_openai_endpoint: str = os.getenv("AZURE_OPENAI_ENDPOINT", "")
    azure_openai_key: str = os.getenv("AZURE_OPENAI_KEY", "")
    azure_openai_deployment: str = os.getenv("AZURE_OPENAI_DEPLOYMENT", "")
    azure_openai_api_version: str = os.getenv("AZURE_OPENAI_API_VERSION", "2023-05-15")
    azure_timeout_s: float = float(os.getenv("AZURE_TIMEOUT_S", "60"))
    neuro_san_api_url: str = os.getenv("NEURO_SAN_API_URL", "")
    neuro_san_project_name: str = os.getenv("NEURO_SAN_PROJECT_NAME", "")
    neuro_san_summary_project_name: str = os.getenv("NEURO_SAN_SUMMARY_PROJECT_NAME", "")
    neuro_san_timeout_s: float = float(os.getenv("NEURO_SAN_TIMEOUT_S", "120"))
    neuro_san_retry_timeout_s: float = float(os.getenv("NEURO_SAN_RETRY_TIMEOUT_S", "20"))
    neuro_san_retry_max_chars: int = int(os.getenv("NEURO_SAN_RETRY_MAX_CHARS", "1200"))
    context_max_chars: int = int(os.getenv("CONTEXT_MAX_CHARS", "3000"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_json: bool = os.getenv("LOG_JSON", "true").lower() == "true"


settings = Settings()


def azure_configured(config: Settings) -> bool:
    return bool(
        config.azure_openai_endpoint and config.azure_openai_key and config.azure_openai_deployment
    )


def neuro_san_configured(config: Settings) -> bool:
    return bool(config.neuro_san_api_url and config.neuro_san_project_name.strip())
