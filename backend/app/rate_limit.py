"""Rate limiting for the Kahraba backend.

Requests are keyed by the bearer token's subject when one is present, so an
electrician polling for offers from a changing mobile IP keeps one bucket.
Anonymous requests fall back to the client IP, and X-Forwarded-For is only
honoured when the direct peer is a trusted proxy.
"""

import ipaddress
import os

from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings
from .logging_config import get_logger

logger = get_logger("kahraba.api.rate_limit")

# Override with TRUSTED_PROXY_CIDRS (comma-separated CIDRs)
_DEFAULT_TRUSTED_CIDRS = [
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "127.0.0.0/8",
    "::1/128",
]

_trusted_networks: list | None = None


def _trusted() -> list:
    global _trusted_networks
    if _trusted_networks is None:
        raw = os.environ.get("TRUSTED_PROXY_CIDRS", "")
        cidrs = [s.strip() for s in raw.split(",") if s.strip()] or _DEFAULT_TRUSTED_CIDRS
        networks = []
        for cidr in cidrs:
            try:
                networks.append(ipaddress.ip_network(cidr, strict=False))
            except ValueError:
                logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr}")
        _trusted_networks = networks
    return _trusted_networks


def _is_trusted_proxy(ip_str: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in network for network in _trusted())


def get_client_ip(request) -> str:
    """Client IP, using the leftmost X-Forwarded-For entry behind a trusted proxy."""
    direct_ip = get_remote_address(request)
    if _is_trusted_proxy(direct_ip):
        forwarded_for = request.headers.get("x-forwarded-for", "")
        client_ip = forwarded_for.split(",")[0].strip()
        if client_ip:
            return client_ip
    return direct_ip


def get_rate_limit_key(request) -> str:
    """``actor:<sub>`` for a valid bearer token, else ``ip:<client ip>``."""
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        settings = get_settings()
        try:
            claims = jwt.decode(
                header[7:].strip(), settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
            )
        except JWTError:
            claims = {}
        if claims.get("sub"):
            return f"actor:{claims['sub']}"
    return f"ip:{get_client_ip(request)}"


limiter = Limiter(key_func=get_rate_limit_key)
