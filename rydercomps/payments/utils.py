import os
import logging
import requests
from typing import Optional
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Ensure environment variables from .env are loaded when this module is imported.
load_dotenv()


def open_session(api_key: Optional[str] = None) -> requests.Session:
    """Open a requests session authenticated against the payment service.

    Parameters
    ----------
    api_key : str, optional
        Secret API key. Defaults to the ``PAYMENT_API_KEY`` environment variable.

    Returns
    -------
    requests.Session
        Session carrying the bearer token on every request.

    Raises
    ------
    RuntimeError
        If no API key is supplied and ``PAYMENT_API_KEY`` is not set.
    """
    key = api_key or os.environ.get("PAYMENT_API_KEY")
    if not key:
        raise RuntimeError("Environment variable 'PAYMENT_API_KEY' is not set")

    session = requests.Session()
    session.headers.update(
        {"Accept": "application/json", "Authorization": f"Bearer {key}"}
    )
    # Never log the key itself
    logger.debug("Payment session opened")
    return session


def to_minor_units(amount) -> int:
    """Convert a two-place money amount to pence."""
    return int((amount * 100).to_integral_value())
