# ABOUTME: Configuration settings for the Proof of Life client using Pydantic Settings.
# ABOUTME: Loads prover/ledger endpoints, retry tuning and game rule defaults from the environment.

from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GameRules(BaseModel):
    """Numeric rules of a session, fixed for its whole lifetime"""

    battery_max: int = Field(default=100, ge=1, description="Battery ceiling")
    ping_cost: int = Field(default=20, ge=0, description="Battery cost of one beacon ping")
    recharge_amount: int = Field(default=10, ge=0, description="Battery gained by a recharge")
    extraction_turn: int = Field(default=10, ge=1, description="Turn at which the ward is extracted")
    alpha_max: int = Field(default=5, ge=1, description="Ward composure ceiling")
    strong_radius_sq: int = Field(
        default=4,
        ge=0,
        description="Squared distance at or below which the pursuer unsettles the ward"
    )
    log_limit: int = Field(default=200, ge=1, description="Maximum narrative log lines kept")

    model_config = {"frozen": True}


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    # Backend selection
    backend_mode: Literal["SIM", "ONCHAIN"] = Field(
        default="SIM",
        description="SIM runs the local rules only; ONCHAIN mirrors every turn to the ledger"
    )

    # Prover Configuration
    prover_url: str = Field(
        default="http://localhost:8788",
        description="Base URL of the proof generation service"
    )
    prover_timeout_seconds: float = Field(
        default=120.0,
        description="Timeout for a single proof request in seconds"
    )

    # Ledger Configuration
    rpc_url: str = Field(
        default="",
        description="Ledger RPC endpoint (required in ONCHAIN mode)"
    )
    network_passphrase: str = Field(
        default="",
        description="Ledger network passphrase (required in ONCHAIN mode)"
    )
    contract_id: str = Field(
        default="",
        description="Game contract id (required in ONCHAIN mode)"
    )

    # Write Pipeline Settings
    write_max_attempts: int = Field(
        default=5,
        description="Maximum attempts for a mutating transaction under congestion"
    )
    write_backoff_base_ms: int = Field(
        default=800,
        description="Base backoff in milliseconds for congestion retries"
    )
    write_backoff_max_ms: int = Field(
        default=8000,
        description="Maximum backoff in milliseconds for congestion retries"
    )
    resource_bump_factors: str = Field(
        default="1.3,1.8,2.4,3.2,4.8",
        description="Resource escalation multipliers per consecutive budget failure (comma-separated)"
    )
    fee_bump_floor: float = Field(
        default=1.4,
        description="Minimum fee multiplier applied on a resource escalation"
    )
    max_write_bytes: int = Field(
        default=132096,
        description="Ledger per-transaction write byte ceiling"
    )
    max_resource_fee: int = Field(
        default=100_000_000,
        description="Fee ceiling in base units for an escalated transaction"
    )
    confirm_timeout_seconds: int = Field(
        default=60,
        description="Seconds to wait for a submitted transaction to confirm"
    )

    # Polling and Locks
    poll_interval_seconds: float = Field(
        default=0.7,
        description="Interval between remote session reads while waiting on a phase change"
    )
    poll_max_attempts: int = Field(
        default=12,
        description="Maximum remote reads before a phase wait is declared desynced"
    )
    action_lock_watchdog_seconds: float = Field(
        default=120.0,
        description="Seconds after which a stuck action lock is force-released"
    )

    # Proof Compatibility
    expected_ping_verifier: str = Field(
        default="",
        description="Expected ping verifier contract id (empty skips the check)"
    )
    expected_turn_status_verifier: str = Field(
        default="",
        description="Expected turn status verifier contract id (empty skips the check)"
    )
    expected_move_verifier: str = Field(
        default="",
        description="Expected move verifier contract id (empty skips the check)"
    )

    # Game Session Settings
    dev_mode: bool = Field(
        default=False,
        description="Skip proof generation and advance turns with the insecure tick"
    )
    battery_max: int = Field(default=100, description="Battery ceiling")
    ping_cost: int = Field(default=20, description="Battery cost of one beacon ping")
    recharge_amount: int = Field(default=10, description="Battery gained by a recharge")
    extraction_turn: int = Field(default=10, description="Turn at which the ward is extracted")
    alpha_max: int = Field(default=5, description="Ward composure ceiling")
    chain_log_limit: int = Field(
        default=200,
        description="Maximum entries kept in the chain activity log"
    )

    # Application Settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_dir: str = Field(default="logs", description="Directory for the game log and chain audit files")
    chain_audit_log: bool = Field(
        default=True,
        description="Write ledger operations to a separate JSON-lines audit file"
    )

    model_config = SettingsConfigDict(
        env_prefix="POL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def resource_bump_factor_list(self) -> list[float]:
        """Parse comma-separated escalation multipliers into a list of floats"""
        return [float(x.strip()) for x in self.resource_bump_factors.split(",") if x.strip()]

    @property
    def is_onchain(self) -> bool:
        return self.backend_mode == "ONCHAIN"

    def game_rules(self) -> GameRules:
        """Build the immutable rule set for a new session"""
        return GameRules(
            battery_max=self.battery_max,
            ping_cost=self.ping_cost,
            recharge_amount=self.recharge_amount,
            extraction_turn=self.extraction_turn,
            alpha_max=self.alpha_max,
        )


# Singleton settings instance - lazy initialization to allow import without .env
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the singleton settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
