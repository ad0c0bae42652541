"""Logging setup for the API process."""
import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if root.handlers:
        return  # already configured (uvicorn or pytest got there first)
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    handler.setFormatter(formatter)
    root.setLevel(level.upper())
    root.addHandler(handler)


def mask_key(api_key: str) -> str:
    """Short, non-secret hint for a credential, safe to put in logs."""
    if not api_key:
        return "<empty>"
    return f"…{api_key[-4:]}" if len(api_key) > 4 else "…"


