"""Application configuration."""
import os

basedir = os.path.abspath(os.path.dirname(__file__))
instance_dir = os.path.join(os.path.dirname(basedir), "instance")


def _csv(value: str) -> list:
    return [part.strip() for part in value.split(",") if part.strip()]


class Config:
    """Base configuration."""
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-in-production")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Durable printer/template/settings snapshot
    PRINTER_CONFIG_PATH = os.environ.get(
        "PRINTER_CONFIG_PATH",
        os.path.join(instance_dir, "printer-config.json")
    )

    # Network dispatch
    NETWORK_CONNECT_TIMEOUT = 5.0  # seconds
    NETWORK_SETTLE_TIMEOUT = 1.0   # seconds to wait for the printer to drain

    # USB dispatch and driver installation
    LP_PRINTER_QUEUE = os.environ.get("LP_PRINTER_QUEUE", "usb-printer")
    USB_COMMAND_TIMEOUT = 10.0

    # Discovery
    NETWORK_DISCOVERY_CANDIDATES = _csv(os.environ.get(
        "NETWORK_DISCOVERY_CANDIDATES",
        "192.168.1.100,192.168.1.101,192.168.1.102,192.168.0.100,192.168.0.101"
    ))
    NETWORK_DISCOVERY_PORT = 9100
    NETWORK_PROBE_TIMEOUT = 2.0

    # Cloud print relays: service name -> API base URL
    CLOUD_PRINT_SERVICES = {
        "printnode": os.environ.get("PRINTNODE_API_URL", "https://api.printnode.com"),
    }
    CLOUD_REQUEST_TIMEOUT = 10.0


class DevelopmentConfig(Config):
    """Development configuration."""
    DEBUG = True
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")
    # Relative sqlite paths resolve inside the app instance folder
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///print_history.db"
    )


class ProductionConfig(Config):
    """Production configuration."""
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///print_history.db"
    )


class TestingConfig(Config):
    """Testing configuration."""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    NETWORK_DISCOVERY_CANDIDATES = []
    NETWORK_PROBE_TIMEOUT = 0.5


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}
