"""
Configuration management for Storystone

Loads environment variables and provides application settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional, Dict, Tuple
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    app_name: str = "Storystone"
    port: int = 3000
    log_level: str = "INFO"

    # CORS Configuration
    # Default "*" allows all origins (suitable for development)
    # For production set a comma-separated list:
    #   CORS_ALLOWED_ORIGINS=https://storystone.app,https://www.storystone.app
    cors_allowed_origins: str = "*"

    # =========================================================================
    # Google Gemini (story segments, continuation, translations)
    # =========================================================================
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    story_start_temperature: float = 1.4  # First segment + title + pool words
    story_continue_temperature: float = 1.3
    translation_temperature: float = 1.0

    # =========================================================================
    # Qloo (entity search, insight tags, cross-domain recommendations)
    # =========================================================================
    qloo_api_key: Optional[str] = None
    qloo_base_url: str = "https://hackathon.api.qloo.com"
    qloo_timeout_seconds: float = 20.0

    # =========================================================================
    # Tag classifier (hosted Gradio space, consumed as an opaque model)
    # =========================================================================
    hf_token: Optional[str] = None
    tag_classifier_space: str = "orph19/TestOfTagClassifier"
    tag_classifier_endpoint: str = "/predict"

    # =========================================================================
    # Firebase Realtime Database
    # =========================================================================
    firebase_database_url: Optional[str] = None
    firebase_project_id: Optional[str] = None
    google_application_credentials: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_private_key_id: Optional[str] = None

    # =========================================================================
    # Language learning
    # =========================================================================
    story_language: str = "english"     # Language the story is told in
    foreign_language: str = "spanish"   # Language of the embedded word pool
    word_type: str = "common"           # Kind of foreign words the model picks
    default_pool_size: int = 20         # Words requested per new story before growth

    # =========================================================================
    # Story arc (Freytag acts, in segments)
    # exposition, rising action, climax, falling action, resolution
    # max_story_length must equal the sum of the acts
    # =========================================================================
    story_act_lengths: Tuple[int, int, int, int, int] = (5, 40, 5, 7, 4)
    max_story_length: int = 61

    # =========================================================================
    # Retries for transient upstream failures (exponential backoff)
    # =========================================================================
    retry_max_attempts: int = 3
    retry_base_delay_seconds: float = 3.0
    retry_max_delay_seconds: float = 50.0

    # Debug Configuration
    debug_storage: bool = False     # Log storage operations (Firebase)
    debug_api_calls: bool = False   # Log LLM / upstream API call details
    debug_log_dir: str = "logs/debug"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def get_firebase_credentials_dict(self) -> Optional[Dict]:
        """
        Get Firebase credentials as a dict from environment variables.

        Returns None if credentials are not available.
        """
        if self.firebase_client_email and self.firebase_private_key:
            return {
                "type": "service_account",
                "project_id": self.firebase_project_id,
                "private_key_id": self.firebase_private_key_id or "",
                "private_key": self.firebase_private_key.replace("\\n", "\n"),  # Handle escaped newlines
                "client_email": self.firebase_client_email,
                "client_id": "",
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": "https://oauth2.googleapis.com/token",
                "auth_provider_x509_cert_url": "https://www.googleapis.com/oauth2/v1/certs",
            }
        return None

    def validate_story_arc(self) -> None:
        """Fail fast when the configured story length disagrees with the acts."""
        if sum(self.story_act_lengths) != self.max_story_length:
            raise ValueError(
                f"max_story_length={self.max_story_length} must equal the sum of "
                f"story_act_lengths={list(self.story_act_lengths)} ({sum(self.story_act_lengths)})"
            )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures we only load settings once.
    """
    return Settings()
