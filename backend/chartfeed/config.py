from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from chartfeed.models.market import Interval, TokenPair


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_env: str = "development"
    app_debug: bool = False
    app_log_level: str = "INFO"

    # Helius (swap push feed)
    helius_api_key: str = ""
    helius_ws_endpoint: str = "wss://atlas-mainnet.helius-rpc.com"

    # Solana Tracker (historical OHLCV)
    solana_tracker_api_key: str = ""
    solana_tracker_base_url: str = "https://data.solanatracker.io"
    market_data_timeout: float = 10.0

    # Chart
    chart_base_token: str = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"  # BONK
    chart_quote_token: str = "So11111111111111111111111111111111111111112"  # SOL
    chart_interval: str = "1m"
    chart_history_periods: int = Field(default=100, ge=1)
    chart_dex_programs: str = "jupiter,raydium,orca"
    synthetic_candles_enabled: bool = True

    # Aggregation
    max_candles: int = Field(default=1000, ge=1)
    late_event_buckets: int | None = None

    # Stream reconnection
    stream_max_reconnect_attempts: int = 5
    stream_reconnect_base_delay: float = 1.0
    stream_reconnect_max_delay: float = 60.0

    # Frontend URL for CORS (comma-separated for multiple origins)
    frontend_url: str = "http://localhost:3000,http://localhost:5173"

    @property
    def cors_origins(self) -> list[str]:
        """Parse frontend_url into a list of origins."""
        return [u.strip() for u in self.frontend_url.split(",") if u.strip()]

    @property
    def dex_programs_list(self) -> list[str]:
        """Parse chart_dex_programs string into a list of DEX names."""
        return [p.strip().lower() for p in self.chart_dex_programs.split(",") if p.strip()]

    @property
    def token_pair(self) -> TokenPair:
        return TokenPair(base=self.chart_base_token, quote=self.chart_quote_token)

    @property
    def interval(self) -> Interval:
        return Interval(self.chart_interval)

    @property
    def helius_ws_url(self) -> str:
        return f"{self.helius_ws_endpoint}/?api-key={self.helius_api_key}"

    @property
    def is_production(self) -> bool:
        return self.app_env == "production"


settings = Settings()
