"""
Configuration management for the payment verification service.

Loads settings from .env via pydantic-settings.

Notes:
    - tip_fee_rate is the platform cut recorded alongside every tip
    - rpc_max_retries / rpc_backoff_seconds bound retries against the Solana node
    - validate_production_settings() enforces strict CORS and a JWT secret in production
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Solana ──────────────────────────────────────────────────────
    solana_rpc_url: str = "https://api.mainnet-beta.solana.com"
    solana_commitment: str = "confirmed"
    cream_token_mint: str = "2WPG6UeEwZ1JPBcXfAcTbtNrnoVXoVu6YP2eSLwbpump"

    # ── RPC behaviour ───────────────────────────────────────────────
    rpc_timeout_seconds: float = 5.0
    rpc_max_retries: int = 2             # extra attempts on transient failures
    rpc_backoff_seconds: float = 0.25    # doubled after each failed attempt
    verification_timeout_seconds: float = 8.0

    # ── Tipping ─────────────────────────────────────────────────────
    tip_fee_rate: float = 0.10           # 10% platform fee

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/payments.db"

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"

    # ── Auth (JWT) ──────────────────────────────────────────────────
    jwt_secret: str = ""
    jwt_issuer: str = "payments-api"

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if not self.jwt_secret:
                raise ValueError(
                    "JWT_SECRET must be set in production. "
                    "It is used to verify caller access tokens."
                )
            if not 0 <= self.tip_fee_rate < 1:
                raise ValueError("TIP_FEE_RATE must be in [0, 1).")
            logger.info("Production settings validated")
        else:
            warnings = []
            if not self.jwt_secret:
                warnings.append("JWT_SECRET is empty (authenticated endpoints will fail)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            if self.solana_rpc_url.startswith("https://api.mainnet-beta.solana.com"):
                warnings.append("SOLANA_RPC_URL is the public mainnet endpoint (rate limited)")
            for w in warnings:
                logger.warning(f"{w}")


# Global settings instance
settings = Settings()
