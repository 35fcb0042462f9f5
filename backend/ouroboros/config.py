import os

# purpose: single place for environment-driven settings
# status: active

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./test.db")
SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "720"))

TESTING = os.getenv("TESTING") == "1"
SENTRY_DSN = os.getenv("SENTRY_DSN")

# "0" allows several lead assignments on a single project
SINGLE_PROJECT_LEAD = os.getenv("SINGLE_PROJECT_LEAD", "1") != "0"

INVITATION_DEFAULT_DAYS = int(os.getenv("INVITATION_DEFAULT_DAYS", "7"))
INVITATION_MAX_DAYS = int(os.getenv("INVITATION_MAX_DAYS", "90"))
COVENANT_INVITATION_DEFAULT_DAYS = int(os.getenv("COVENANT_INVITATION_DEFAULT_DAYS", "30"))

EMAIL_DOMAIN = os.getenv("EMAIL_DOMAIN", "ouroboros.foundation")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if origin.strip()
]
