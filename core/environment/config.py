import os
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings using Pydantic Settings.

    Attributes
    ----------
    database_url : str
        SQLAlchemy async database URL
    redis_host : str
        Redis host for caching
    redis_port : int
        Redis port
    redis_db : int
        Redis database number
    redis_password : str
        Redis password (optional)
    moralis_api_key : str
        Moralis API key for fetching ERC-20 balances
    moralis_base_url : str
        Moralis Web3 Data API base URL
    coingecko_base_url : str
        CoinGecko API base URL
    coingecko_api_key : str
        CoinGecko demo API key (optional)
    ingest_max_tokens : int
        Maximum number of balances kept per network on ingest
    seed_address : str
        Wallet ingested once at startup (optional)
    user_agent : str
        User-Agent header sent to upstream APIs
    """

    database_url: str = "sqlite+aiosqlite:///./portfolio.db"

    redis_host: str
    redis_port: int
    redis_db: int
    redis_password: str

    moralis_api_key: str
    moralis_base_url: str = "https://deep-index.moralis.io/api/v2.2"
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    coingecko_api_key: str = ""

    ingest_max_tokens: int = 200
    seed_address: str = ""
    user_agent: str = "portfolio-api/1.0"

    model_config = SettingsConfigDict(
        env_file=os.getenv("ENV_FILE", ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    def get_coingecko_headers(self) -> dict[str, str]:
        """
        Get headers for CoinGecko requests.

        Returns
        -------
        dict[str, str]
            Headers including the API key when configured
        """
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        if self.coingecko_api_key:
            headers["x-cg-demo-api-key"] = self.coingecko_api_key
        return headers
