"""
EMS client configuration. Values from environment with local-development defaults.
"""
import os

# REST API base URL; every resource path is relative to it
API_BASE_URL = os.environ.get("EMS_API_BASE_URL", "http://127.0.0.1:8080/api").rstrip("/")

# JSON file backing the persisted session (the browser localStorage analogue)
STORAGE_PATH = os.environ.get("EMS_CLIENT_STORAGE_PATH", ".ems_session.json")

# Transport timeout for every request (seconds)
REQUEST_TIMEOUT = float(os.environ.get("EMS_CLIENT_TIMEOUT", "10.0"))

# Proactive refresh at startup when the access token expires within this window
TOKEN_REFRESH_LEAD_SECONDS = 5 * 60

# Fixed storage keys for the persisted session
ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "user"

# Routes used by logout and the role guard
LOGIN_ROUTE = "/login"
DASHBOARD_ROUTE = "/dashboard"

# Auth endpoints that never carry a bearer token and never trigger a refresh
EXEMPT_PATHS = (
    "/auth/login",
    "/auth/refresh",
    "/auth/activate",
    "/auth/forgot-password",
    "/auth/reset-password",
)

# Carries a token but a 401 from it never starts a refresh cycle
NO_REFRESH_PATHS = ("/auth/logout",)

# Matches the API's pagination defaults
DEFAULT_PAGE_SIZE = 20
LIST_ALL_PAGE_SIZE = 1000
