import logging

from ttrac.core.config import settings

logger = logging.getLogger(__name__)


def check_credentials(require_service_key: bool = False) -> bool:
    """Scripts read SUPABASE_URL / SUPABASE_KEY / SUPABASE_SERVICE_KEY from the environment or .env."""
    missing = []
    if not settings.SUPABASE_URL:
        missing.append("SUPABASE_URL")
    if require_service_key and not settings.SUPABASE_SERVICE_KEY:
        missing.append("SUPABASE_SERVICE_KEY")
    elif not (settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_KEY):
        missing.append("SUPABASE_KEY")
    if missing:
        logger.error("Missing required environment variables: %s", ", ".join(missing))
        return False
    return True
