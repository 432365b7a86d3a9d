from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    INDEX_MANIFEST_URL: str = "data/index/manifest.json"

    # search defaults (coarse clusters, docs per cluster, final hits)
    TOP_M_CLUSTERS: int = 3
    TOP_K_PER_CLUSTER: int = 5
    FINAL_TOP_N: int = 5

    NORMALIZATION_TOLERANCE: float = 1e-5
    LOAD_CONCURRENCY: int = 8
    FETCH_TIMEOUT_SECONDS: float = 10.0

    # optional build expectations checked by the validator
    EXPECTED_MODEL_ID: str | None = None
    EXPECTED_DIMENSIONS: int | None = None

    COHERE_API_KEY: str | None = None
    COHERE_MODEL: str = "embed-english-v3.0"

    TEMPORAL_ADDRESS: str = "localhost:7233"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8"
    )


settings = Settings()
