import functools
import os

import pytest
from google.api_core.exceptions import PermissionDenied


def skip_if_missing_env_vars(required_vars):
    """
    Decorator to skip tests if required environment variables are not set.

    Args:
        required_vars (list): List of environment variable names to check.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            missing = [var for var in required_vars if not os.getenv(var)]
            if missing:
                pytest.skip(
                    f"Missing required environment variables: {', '.join(missing)}. "
                    "Ensure they are set in your environment or .env file."
                )
            return func(*args, **kwargs)

        return wrapper

    return decorator


def skip_on_billing_error(func):
    """
    Decorator to skip tests if Google Cloud billing is not enabled.

    Both Vision and Document AI refuse requests on projects without billing.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except PermissionDenied as e:
            if "billing" in str(e).lower():
                pytest.skip(
                    "Google Cloud OCR APIs require billing to be enabled. "
                    "Enable billing on your project or skip integration tests."
                )
            raise

    return wrapper


def receipt_image(dataset_dir, name):
    """Return the path of a dataset image, skipping the test if it's absent."""
    path = dataset_dir / name
    if not path.exists():
        pytest.skip(f"Test image not found: {path}")
    return path
