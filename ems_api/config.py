"""
EMS API configuration. Values from environment with local-development defaults.
No secrets in this file; the JWT secret and seed credentials come from env.
"""
import os

# SQLite DB for development
DATABASE_URL = os.environ.get("EMS_DATABASE_URL", "sqlite:///./ems_api.db")

# HS256 signing secret. The default is for local development only.
JWT_SECRET_KEY = os.environ.get("EMS_JWT_SECRET_KEY", "dev-only-change-me-0123456789abcdef")
JWT_ALGORITHM = "HS256"

# Access token lifetime (seconds); returned to clients as expiresIn
ACCESS_TOKEN_EXPIRES = int(os.environ.get("EMS_ACCESS_TOKEN_EXPIRES", "86400"))

# Refresh token lifetime (seconds); default 7 days
REFRESH_TOKEN_EXPIRES = int(os.environ.get("EMS_REFRESH_TOKEN_EXPIRES", str(7 * 24 * 3600)))

# Invite and password-reset links expire after this many seconds
ACCOUNT_TOKEN_EXPIRES = 24 * 3600

# Rate limiting: per client IP, per minute
RATE_LIMIT_LOGIN_PER_MINUTE = int(os.environ.get("EMS_RATE_LIMIT_LOGIN_PER_MINUTE", "20"))

# Base URL of the UI; activation and reset links point here
FRONTEND_BASE_URL = os.environ.get("EMS_FRONTEND_BASE_URL", "http://localhost:4200").rstrip("/")

# Account emails go through SendGrid when the key and sender are set; otherwise links are logged
SENDGRID_API_KEY = os.environ.get("EMS_SENDGRID_API_KEY", "")
SENDGRID_FROM_EMAIL = os.environ.get("EMS_SENDGRID_FROM_EMAIL", "")
SENDGRID_FROM_NAME = os.environ.get("EMS_SENDGRID_FROM_NAME", "Employee Management System")
SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"

# Pagination
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Domain values
PROJECT_STATUSES = ("Planning", "Active", "On Hold", "Completed", "Cancelled")
TASK_STATUSES = ("Not Started", "In Progress", "On Hold", "Completed", "Cancelled")
TASK_PRIORITIES = ("Low", "Medium", "High", "Urgent")
