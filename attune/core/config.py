from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = "postgresql://attune:attune@db:5432/attune"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # Comma-separated allowed origins, or "*" to allow all.
    CORS_ORIGINS: str = "*"

    # Generative-language provider (mandatory for synthesis)
    GOOGLE_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.0-flash"
    GEMINI_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta"

    # Embeddings inference provider
    HF_API_KEY: str | None = None
    HF_EMBED_MODEL: str = "BAAI/bge-small-en-v1.5"
    HF_INFERENCE_URL: str = "https://router.huggingface.co/hf-inference/models"

    # "sql" keeps vectors in DATABASE_URL; "supabase" uses the hosted pgvector RPC.
    VECTOR_BACKEND: str = "sql"
    SUPABASE_URL: str | None = None
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    SUPABASE_EMBEDDINGS_TABLE: str = "sovereign_log_embeddings"
    SUPABASE_MATCH_FUNCTION: str = "match_sovereign_logs"

    # Optional on-the-fly context collaborators
    IPGEOLOCATION_API_KEY: str | None = None
    IPGEOLOCATION_URL: str = "https://api.ipgeolocation.io/astronomy"
    RAPIDAPI_ASTROLOGY_KEY: str | None = None
    RAPIDAPI_ASTROLOGY_HOST: str | None = None

    HTTP_TIMEOUT_SECONDS: float = 10.0
    MODEL_TIMEOUT_SECONDS: float = 60.0

    ATTUNEMENT_CACHE_TTL_HOURS: int = 24

    # Single-tenant deployments only: lets requests without a userId share DEFAULT_USER_ID.
    ALLOW_ANONYMOUS_USER: bool = False
    DEFAULT_USER_ID: str = "default"

    @property
    def cors_origins_list(self) -> list[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
