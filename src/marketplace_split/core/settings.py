"""
Settings for the marketplace split service.
"""

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

MP_AUTHORIZATION_URL = "https://auth.mercadopago.com/authorization"
MP_API_BASE_URL = "https://api.mercadopago.com"
MP_OAUTH_CALLBACK_PATH = "/mercadopago/oauth/callback"
MP_WEBHOOK_PATH = "/mercadopago/webhook"

load_dotenv()


class MercadoPagoSettings(BaseSettings):
    """
    Settings for the Mercado Pago connect application and the platform around it.
    """

    mp_app_id: str = ""
    mp_client_secret: str = ""
    mp_marketplace_access_token: str = ""
    backend_url: str = "http://localhost:8000"
    frontend_url: str = "http://localhost:3000"
    seller_panel_path: str = "/seller-panel"
    orders_path: str = "/my-orders"
    order_system_webhook_url: str = ""
    internal_api_key: str = ""
    marketplace_fixed_fee: float = 0.01
    currency_id: str = "BRL"
    http_timeout_seconds: float = 10.0
    relay_max_attempts: int = 3
    relay_backoff_seconds: float = 1.0
    database_url: str = "sqlite:///./marketplace_split.db"
    db_pool_size: int = 10
    db_pool_timeout_seconds: float = 10.0
    cors_origins: list[str] = ["http://localhost:3000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def oauth_redirect_uri(self) -> str:
        """Callback address registered with the connect application."""
        return f"{self.backend_url.rstrip('/')}{MP_OAUTH_CALLBACK_PATH}"

    @property
    def notification_url(self) -> str:
        """Address Mercado Pago posts payment notifications to."""
        return f"{self.backend_url.rstrip('/')}{MP_WEBHOOK_PATH}"

    @property
    def seller_panel_url(self) -> str:
        return f"{self.frontend_url.rstrip('/')}{self.seller_panel_path}"

    @property
    def orders_url(self) -> str:
        return f"{self.frontend_url.rstrip('/')}{self.orders_path}"
