"""High-level HMC Web Services API client entrypoints."""
from .client import HMCClient, change_password
from .config import ClientConfig
from .exceptions import ErrorCode, HmcError
from .resources.jobs import Job

__all__ = ["HMCClient", "ClientConfig", "HmcError", "ErrorCode", "Job", "change_password"]
