from pathlib import Path
from typing import List, Optional
from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=Path(__file__).resolve().parents[3] / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    project_name: str = "MedSearch Evidence Engine"
    log_level: str = "INFO"

    # Contact email sent to NCBI Entrez and to the CrossRef/OpenAlex polite pools
    api_contact_email: str = Field(
        default="researcher@example.com",
        description="Email for API contact/User-Agent (update with your real email)"
    )

    ncbi_api_key: Optional[SecretStr] = Field(default=None, description="NCBI E-utilities API key")
    semantic_scholar_api_key: Optional[SecretStr] = Field(default=None, description="Semantic Scholar API key")
    openfda_api_key: Optional[SecretStr] = Field(default=None, description="openFDA API key")

    redis_host: str = "localhost"
    redis_port: int = 6379
    use_redis_cache: bool = True
    rate_limit_enabled: bool = True

    search_cache_enabled: bool = True
    search_cache_ttl_minutes: int = Field(default=30, ge=1)
    search_cache_max_entries: int = Field(default=512, ge=1)

    source_timeout_seconds: float = Field(default=20.0, gt=0)
    retry_max_attempts: int = Field(default=3, ge=1, le=10)
    retry_backoff_seconds: float = Field(default=0.5, ge=0)
    retry_max_backoff_seconds: float = Field(default=4.0, ge=0)

    max_results_per_source: int = Field(default=25, ge=1, le=100)
    min_medical_relevance: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Records whose medical relevance sub-score falls below this gate are dropped"
    )

    enabled_sources: List[str] = Field(
        default_factory=lambda: [
            "PubMed",
            "EuropePMC",
            "SemanticScholar",
            "CrossRef",
            "OpenAlex",
            "ClinicalTrials.gov",
            "openFDA",
        ]
    )
    emergency_source: Optional[str] = Field(
        default=None,
        description="Source used for the emergency query; the most reliable available source when unset"
    )
    vocabulary_path: Optional[str] = Field(
        default=None,
        description="Alternative vocabulary YAML file; the packaged tables are used when unset"
    )

    @property
    def PROJECT_NAME(self) -> str:
        return self.project_name

    @property
    def LOG_LEVEL(self) -> str:
        return self.log_level

    @property
    def API_CONTACT_EMAIL(self) -> str:
        return self.api_contact_email

    @property
    def NCBI_API_KEY(self) -> Optional[str]:
        if self.ncbi_api_key:
            return self.ncbi_api_key.get_secret_value()
        return None

    @property
    def SEMANTIC_SCHOLAR_API_KEY(self) -> Optional[str]:
        if self.semantic_scholar_api_key:
            return self.semantic_scholar_api_key.get_secret_value()
        return None

    @property
    def OPENFDA_API_KEY(self) -> Optional[str]:
        if self.openfda_api_key:
            return self.openfda_api_key.get_secret_value()
        return None

    @property
    def REDIS_HOST(self) -> str:
        return self.redis_host

    @property
    def REDIS_PORT(self) -> int:
        return self.redis_port

    @property
    def RATE_LIMIT_ENABLED(self) -> bool:
        return self.rate_limit_enabled

    @property
    def SEARCH_CACHE_TTL_SECONDS(self) -> int:
        return self.search_cache_ttl_minutes * 60


settings = Settings()
