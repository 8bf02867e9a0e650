import os


class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "super-secret-key")

    SQLALCHEMY_DATABASE_URI = os.getenv(
        "SQLALCHEMY_DATABASE_URI",
        "sqlite:///lending.db"
    )

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "jwt-super-secret")

    # Lending rules
    MAX_CONCURRENT_BORROWS = int(os.getenv("MAX_CONCURRENT_BORROWS", "5"))
    LOAN_PERIOD_DAYS = int(os.getenv("LOAN_PERIOD_DAYS", "14"))

    # Expiry sweeper
    PENDING_EXPIRY_HOURS = int(os.getenv("PENDING_EXPIRY_HOURS", "48"))
    SWEEP_INTERVAL_MINUTES = int(os.getenv("SWEEP_INTERVAL_MINUTES", "60"))
    SCHEDULER_ENABLED = os.getenv("SCHEDULER_ENABLED", "1") == "1"

    # Lost conditional-write races are retried this many times
    CAS_MAX_RETRIES = int(os.getenv("CAS_MAX_RETRIES", "3"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}
    JWT_SECRET_KEY = "test-jwt-secret-with-enough-length-for-hs256"
    SCHEDULER_ENABLED = False
