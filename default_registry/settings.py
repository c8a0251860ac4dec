# https://fastapi.tiangolo.com/advanced/settings/#pydantic-settings

import logging.config

import sentry_sdk
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Each setting has a corresponding uppercase environment variable.

    .. seealso:: `Settings Management <https://docs.pydantic.dev/latest/concepts/pydantic_settings/#usage>`__
    """

    #: If "production", error responses never include exception details.
    environment: str = "development"
    #: The `logging level <https://docs.python.org/3/library/logging.html#levels>`__ of the root logger.
    log_level: int | str = logging.INFO
    #: PostgreSQL connection string.
    database_url: str = "postgresql:///default_registry?application_name=default_registry"
    #: PostgreSQL connection string that overrides ``DATABASE_URL`` (the tests drop the database).
    test_database_url: str = ""

    # Security

    #: The secret key with which bearer tokens are signed by the identity service. Required.
    jwt_secret: str = Field(min_length=1)
    #: The algorithm with which bearer tokens are signed.
    jwt_algorithm: str = "HS256"

    # Workflows

    #: The number of times to retry a transaction that fails on a unique constraint, like two requests creating the
    #: same customer at once.
    #:
    #: .. seealso:: :func:`default_registry.db.retry_on_integrity_error`
    max_transaction_retries: int = 3
    #: Whether applications may reference disabled default reasons, and renewals disabled renewal reasons.
    #:
    #: .. seealso:: :func:`default_registry.workflows.reasons.get_default_reasons_for_application`
    reject_disabled_reasons: bool = False
    #: The largest page size accepted by list endpoints.
    max_page_size: int = 100

    # Presentation

    #: The base URL of the frontend (for CORS).
    frontend_url: str = "http://localhost:3000"
    #: The language of response messages.
    language: str = "en"

    # Third-party services

    #: Sentry DSN.
    sentry_dsn: str = ""

    model_config = SettingsConfigDict(env_file=".env")


app_settings = Settings()

logging.config.dictConfig(
    {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "format": "%(asctime)s %(levelname)s [%(name)s:%(lineno)s] %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "console",
            },
        },
        "loggers": {
            "": {
                "handlers": ["console"],
                "level": app_settings.log_level,
            },
        },
    }
)

if app_settings.sentry_dsn:
    sentry_sdk.init(
        dsn=app_settings.sentry_dsn,
        environment=app_settings.environment,
        # Set traces_sample_rate to 1.0 to capture 100% of transactions for performance monitoring.
        traces_sample_rate=1.0,
    )
