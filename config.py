import os
import yaml

ROOT_PATH = os.path.dirname(__file__)
CONFIG_FILE_PATH = os.path.join(ROOT_PATH, "env.yaml")

if os.path.exists(CONFIG_FILE_PATH):
    with open(CONFIG_FILE_PATH, "r") as r_file:
        data = yaml.safe_load(r_file) or dict()
else:
    data = dict()


class ApplicationConfig:
    DB_URI = data.get("DB_URI", "sqlite+aiosqlite:///./wallet.db")
    API_PREFIX = data.get("API_PREFIX", "")  # Mounted in front of /billing
    API_PORT = data.get("API_PORT", 8000)
    API_HOST = data.get("API_HOST", "0.0.0.0")
    API_RELOAD = bool(data.get("API_RELOAD", False))
    CORS_ORIGINS = data.get("CORS_ORIGINS", [])
    CORS_ALLOW_CREDENTIALS = data.get("CORS_ALLOW_CREDENTIALS", True)
    LOG_LEVEL = data.get("LOG_LEVEL", "INFO")
    ENABLE_LOGGING_MIDDLEWARE = bool(data.get("ENABLE_LOGGING_MIDDLEWARE", 1))
    AUTO_CREATE_TABLES = bool(data.get("AUTO_CREATE_TABLES", True))

    # Shared key for service-to-service routes (refunds); empty disables them
    SERVICE_API_KEY = data.get("SERVICE_API_KEY", "")

    # Payment gateway
    PAYMENT_GATEWAY = data.get("PAYMENT_GATEWAY", "local")  # local | http
    PAYMENT_API_BASE_URL = data.get("PAYMENT_API_BASE_URL", "")
    PAYMENT_KEY_ID = data.get("PAYMENT_KEY_ID", "key_local")
    PAYMENT_KEY_SECRET = data.get("PAYMENT_KEY_SECRET", "local_secret")
    PAYMENT_WEBHOOK_SECRET = data.get("PAYMENT_WEBHOOK_SECRET", "local_webhook_secret")
    PAYMENT_CURRENCY = data.get("PAYMENT_CURRENCY", "INR")
    GATEWAY_TIMEOUT_SECONDS = data.get("GATEWAY_TIMEOUT_SECONDS", 10.0)
    GATEWAY_MAX_RETRIES = data.get("GATEWAY_MAX_RETRIES", 3)
    GATEWAY_BACKOFF_BASE_SECONDS = data.get("GATEWAY_BACKOFF_BASE_SECONDS", 0.5)

    # Subscription lifecycle
    BILLING_CYCLE_MONTHS = data.get("BILLING_CYCLE_MONTHS", 1)
    SUBSCRIPTION_RENEWAL_ENABLED = bool(data.get("SUBSCRIPTION_RENEWAL_ENABLED", True))
    SUBSCRIPTION_RENEWAL_INTERVAL_SECONDS = data.get("SUBSCRIPTION_RENEWAL_INTERVAL_SECONDS", 3600)

    # Ledger reconciliation
    RECONCILIATION_ENABLED = bool(data.get("RECONCILIATION_ENABLED", True))
    RECONCILIATION_INTERVAL_SECONDS = data.get("RECONCILIATION_INTERVAL_SECONDS", 86400)  # Daily

    # Reference data seeded at startup (lists of dicts)
    CATALOG_PLANS = data.get("CATALOG_PLANS", [])
    CATALOG_PRODUCTS = data.get("CATALOG_PRODUCTS", [])
    CATALOG_FEATURES = data.get("CATALOG_FEATURES", [])
