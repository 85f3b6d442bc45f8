"""TLS configuration for console connections."""

from __future__ import annotations

import logging
import ssl
from typing import Any

from requests.adapters import HTTPAdapter

from .config import ClientConfig
from .exceptions import InvalidURLError

logger = logging.getLogger(__name__)


def build_tls_context(config: ClientConfig) -> ssl.SSLContext | None:
    """Turn the certificate options of ``config`` into an SSL context.

    Returns None when the library defaults apply (verification on, no custom
    root certificate). With ``skip_cert`` the PEM file, if any, is still
    installed so that re-enabling verification later finds a trust anchor.
    """

    if not config.skip_cert and not config.ca_cert:
        return None

    if config.ca_cert:
        # Only the given PEM is trusted; the system CA store is not loaded.
        try:
            context = ssl.create_default_context(cafile=config.ca_cert)
        except (OSError, ssl.SSLError) as exc:
            raise InvalidURLError(
                f"Unable to load root certificate {config.ca_cert!r}: {exc}",
                details=str(exc),
            ) from exc
        logger.debug("Loaded root certificate %s", config.ca_cert)
    else:
        context = ssl.create_default_context()
    if config.skip_cert:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class TLSContextAdapter(HTTPAdapter):
    """Transport adapter that hands a prepared SSL context to urllib3."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs: Any) -> None:
        self.ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, *args: Any, **kwargs: Any) -> None:
        kwargs["ssl_context"] = self.ssl_context
        super().init_poolmanager(*args, **kwargs)

    def proxy_manager_for(self, proxy: str, **proxy_kwargs: Any) -> Any:
        proxy_kwargs["ssl_context"] = self.ssl_context
        return super().proxy_manager_for(proxy, **proxy_kwargs)
