"""Configuration management for Cardy Engine."""

from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # Sandboxed environments may not expose .env; rely on real env vars
    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")

    # OpenAI configuration (required)
    OPENAI_API_KEY: str = Field(..., description="OpenAI API key")
    OPENAI_TIMEOUT_SECONDS: float = Field(default=60.0, description="Per-request OpenAI timeout")

    # Environment
    CARDY_ENV: str = Field(default="dev", description="Environment: dev, staging, prod, test")

    # Embedding configuration
    EMBEDDING_MODEL: str = Field(
        default="text-embedding-3-small", description="OpenAI embedding model"
    )
    EMBEDDING_DIM: int = Field(default=1536, description="Embedding vector dimension")
    EMBEDDING_MAX_RETRIES: int = Field(
        default=3, description="Retries per chunk on transient embedding errors"
    )
    EMBEDDING_RETRY_BASE_DELAY: float = Field(
        default=1.0, description="Initial backoff delay in seconds (doubles per attempt)"
    )
    EMBEDDING_CONCURRENCY: int = Field(
        default=5, description="Max concurrent embedding requests per document"
    )
    PROCESSING_STALE_SECONDS: int = Field(
        default=900, description="Age after which a forced reprocess may reclaim a stuck run"
    )

    # Chunking configuration
    CHUNK_MAX_CHARS: int = Field(default=1000, description="Max characters per chunk")
    CHUNK_OVERLAP: int = Field(default=200, description="Characters shared by adjacent chunks")

    # Retrieval configuration
    MATCH_THRESHOLD: float = Field(default=0.7, description="Minimum cosine similarity (0-1)")
    MATCH_COUNT: int = Field(default=10, description="Max chunks returned per query")
    FALLBACK_MAX_CHARS: int = Field(
        default=4000, description="Max characters per document in the unscored fallback scan"
    )
    CONTEXT_MAX_CHARS: int = Field(
        default=12000, description="Max characters of document context sent to the model"
    )

    # Cardy Mind chat configuration
    CHAT_MODEL: str = Field(default="gpt-4o-mini", description="Model for document chat")
    CHAT_TEMPERATURE: float = Field(default=0.3, description="Chat sampling temperature")
    CHAT_MAX_TOKENS: int = Field(default=2000, description="Max tokens per chat reply")
    CHAT_HISTORY_LIMIT: int = Field(
        default=5, description="Conversation turns forwarded to the model"
    )

    # Artifact generation configuration
    GENERATION_MODEL: str = Field(default="gpt-4o", description="Model for story artifacts")
    GENERATION_TEMPERATURE: float = Field(default=0.2, description="Generation temperature")
    GENERATION_MAX_TOKENS: int = Field(default=4000, description="Max tokens per artifact")

    # Cardy Mind voice
    TRANSCRIPTION_MODEL: str = Field(default="whisper-1", description="Speech-to-text model")
    SPEECH_MODEL: str = Field(default="tts-1", description="Text-to-speech model")
    SPEECH_VOICE: str = Field(default="alloy", description="Default text-to-speech voice")
    MAX_AUDIO_BYTES: int = Field(
        default=25_000_000, description="Max audio upload size for transcription"
    )

    # Storage and uploads
    DOCUMENTS_BUCKET: str = Field(default="documents", description="Supabase Storage bucket")
    MAX_UPLOAD_BYTES: int = Field(default=10_000_000, description="Max file upload size in bytes")

    # Browser origins allowed to call the API
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    # Outbound HTTP (Jira, Google)
    HTTP_TIMEOUT_SECONDS: float = Field(default=30.0, description="Timeout for outbound HTTP")
    GOOGLE_ACCESS_TOKEN: str | None = Field(
        default=None, description="OAuth access token for Google Docs export"
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
