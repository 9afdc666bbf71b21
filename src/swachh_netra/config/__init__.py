import os


def get_settings_module() -> str:
    """Settings module selected by APP_ENV (default: development)."""
    env = os.getenv("APP_ENV", "development").lower()

    if env in {"prod", "production"}:
        return "swachh_netra.config.production"

    if env in {"test", "testing"}:
        return "swachh_netra.config.testing"

    return "swachh_netra.config.development"
