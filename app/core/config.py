from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv(override=True)


def _split_csv(val: str | None) -> list[str]:
    return [v.strip() for v in (val or "").split(",") if v.strip()]


class Settings(BaseSettings):
    PROJECT_NAME: str = "RevivePass API"
    # Application settings
    PORT: int = 4000
    HOST: str = "0.0.0.0"
    VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    ALLOW_ORIGINS: str = "*"

    # SQLAlchemy database URL
    DATABASE_URL: str = "sqlite:///./data/revivepass.sqlite"
    DB_SCHEMA: str | None = None

    # Wallet challenge configuration
    APP_NAME: str = "RevivePass"
    NONCE_NUM_BYTES: int = 18
    NONCE_EXPIRY_SECONDS: int = 600  # 10 minutes

    # Login configuration
    ENCODE_KEY: str = "dev-secret-change-me"
    ENCODE_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_SECONDS: int = 1800  # 30 minutes

    # Admin wallets, comma separated. Empty disables admin auth.
    ADMIN_WALLETS: str = ""
    ADMIN_SESSION_HOURS: int = 12

    # Solana
    SOLANA_RPC_URL: str = "https://api.devnet.solana.com"
    METADATA_URI: str = (
        "https://gateway.pinata.cloud/ipfs/"
        "bafybeidxodle6nc54u6igkez7tuve24utvtbhmldxal5ewbsmpuaskkj4u"
    )
    METADATA_TIMEOUT_SECONDS: float = 5.0

    # External minting service
    MINT_SERVICE_URL: str = "http://localhost:4100/mint"
    MINT_SERVICE_API_KEY: str | None = None
    MINT_TIMEOUT_SECONDS: float = 60.0

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    def admin_wallets(self) -> list[str]:
        return _split_csv(self.ADMIN_WALLETS)

    def allow_origins(self) -> list[str]:
        return _split_csv(self.ALLOW_ORIGINS) or ["*"]

    def explorer_cluster_suffix(self) -> str:
        if "devnet" in self.SOLANA_RPC_URL:
            return "?cluster=devnet"
        if "testnet" in self.SOLANA_RPC_URL:
            return "?cluster=testnet"
        return ""

    def explorer_tx_url(self, tx_signature: str) -> str:
        return f"https://explorer.solana.com/tx/{tx_signature}{self.explorer_cluster_suffix()}"


# Instantiate the settings
settings = Settings()
