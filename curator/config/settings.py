from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator
from functools import lru_cache
from pathlib import Path
from typing import Optional, List

from curator.models.article import RECORD_SUFFIX


class Settings(BaseSettings):
    """
    Curator settings loaded from environment variables.

    Environment variables can come from:
    - docker-compose.yml environment section
    - .env file
    - System environment

    Variable names match the deployment conventions:
    - IPFS_HOST, WIRE_CHANNEL, CURATED_DIR, ... (for the IPFS node)
    - POSTGRES_HOST, POSTGRES_PORT, etc. (for the cardano db-sync database)
    - POSTGRES_PASSWORD_FILE (docker secret, wins over POSTGRES_PASSWORD)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # IPFS node (kubo RPC API)
    ipfs_host: str = "localhost:5001"
    ipfs_timeout: float = 60.0

    # Gossip wire
    wire_channel: str = "dbranch-wire"
    peer_allow_file: str = "./peer-allow-list.json"
    allow_empty_peer_list: bool = False

    # Mutable file system layout
    curated_dir: str = "/dBranch/curated"
    published_dir: str = "/dBranch/published"
    index_path: str = "/dBranch/index.json"
    article_extensions: List[str] = [".news"]

    # Ledger sync
    cardano_address_file: str = "./cardano-addresses.txt"
    state_dir: str = "~/.dbranch"
    poll_interval: float = 20.0

    # Startup
    startup_attempts: int = 12
    startup_retry_delay: float = 5.0

    # PostgreSQL (cardano db-sync)
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "postgres"
    postgres_password_file: Optional[str] = None
    postgres_password: str = ""
    postgres_db: str = "cexplorer"
    postgres_ssl_mode: str = "disable"

    # Read API
    server_host: str = "0.0.0.0"
    server_port: int = 1323

    # Logging ("-" means stderr)
    log_path: str = "-"
    log_level: str = "INFO"

    @field_validator('article_extensions')
    @classmethod
    def extensions_distinct_from_records(cls, v):
        """Record sidecars are <name>.json, so .json cannot mark an article"""
        if RECORD_SUFFIX in v:
            raise ValueError(f"{RECORD_SUFFIX} is reserved for article records")
        return v

    @field_validator('postgres_password', mode='after')
    @classmethod
    def read_password_file(cls, v, info):
        """Use POSTGRES_PASSWORD_FILE contents when it points at a secret"""
        password_file = info.data.get('postgres_password_file')
        if password_file and Path(password_file).exists():
            return Path(password_file).read_text().strip()
        return v

    @property
    def state_path(self) -> Path:
        return Path(self.state_dir).expanduser()

    @property
    def ipfs_api_url(self) -> str:
        host = self.ipfs_host
        if not host.startswith(("http://", "https://")):
            host = f"http://{host}"
        return host.rstrip("/") + "/api/v0"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
