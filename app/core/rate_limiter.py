# app/core/rate_limiter.py

from slowapi import Limiter
from slowapi.util import get_remote_address
from app.core.config import settings
from loguru import logger


# ----------------------------------------------------------------
# 1. CLIENT IP BEHIND PROXIES
# ----------------------------------------------------------------
def get_real_ip(request):
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Leftmost entry is the actual client
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return get_remote_address(request)


# ----------------------------------------------------------------
# 2. STORAGE URI (managed Redis in prod needs TLS)
# ----------------------------------------------------------------
storage_uri = settings.REDIS_URL

if storage_uri and storage_uri.startswith("redis://") and settings.ENV == "prod":
    storage_uri = storage_uri.replace("redis://", "rediss://", 1)


# ----------------------------------------------------------------
# 3. LIMITER (falls back to memory so the API stays up)
# ----------------------------------------------------------------
try:
    if storage_uri:
        logger.info("⚡ Initializing Rate Limiter with Redis Storage")
        limiter = Limiter(
            key_func=get_real_ip,
            storage_uri=storage_uri,
            strategy="fixed-window",
            storage_options={"socket_connect_timeout": 5, "retry_on_timeout": True},
            enabled=not settings.TESTING,
        )
    else:
        logger.warning("⚠️ REDIS_URL not found. Falling back to In-Memory rate limiting.")
        limiter = Limiter(key_func=get_real_ip, enabled=not settings.TESTING)

except Exception as e:
    logger.error(f"❌ Failed to connect to Redis for Rate Limiting: {e}")
    limiter = Limiter(key_func=get_real_ip, enabled=not settings.TESTING)

REGISTRATION_LIMIT = "10/minute"
