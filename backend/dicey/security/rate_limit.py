from slowapi import Limiter
from slowapi.util import get_remote_address

from dicey.core.settings import get_settings

# If later behind a proxy, parse X-Forwarded-For here.
limiter = Limiter(key_func=get_remote_address, enabled=get_settings().enable_rate_limits)

LOGIN_LIMIT = "5/10seconds;20/minute"
SIGNUP_LIMIT = "5/minute"
