from .base import *  # noqa: F403
from .base import LOGGING
from .base import env

# GENERAL
# ------------------------------------------------------------------------------
# https://docs.djangoproject.com/en/dev/ref/settings/#debug
DEBUG = True
# https://docs.djangoproject.com/en/dev/ref/settings/#secret-key
SECRET_KEY = env(
    "DJANGO_SECRET_KEY",
    default="0d8qJxw5Tt9yYz2mV1mH2gq7Yp3cNc4uQeLr6vB8sKf1aZo0XnWjDhGiEuRlPbMs",
)
# https://docs.djangoproject.com/en/dev/ref/settings/#allowed-hosts
ALLOWED_HOSTS = ["localhost", "0.0.0.0", "127.0.0.1"]  # noqa: S104

# Your stuff...
# ------------------------------------------------------------------------------
LOGGING["loggers"]["auction_sync"]["level"] = "DEBUG"  # type: ignore[index]
