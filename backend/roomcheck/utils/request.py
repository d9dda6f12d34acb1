import re
from dataclasses import dataclass
from typing import Mapping, Optional

MAX_USER_AGENT_LENGTH = 500

_TAG_PATTERN = re.compile(r"<[^>]*>")


@dataclass(frozen=True)
class RequestMeta:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def extract_ip_address(headers: Mapping[str, str], client_host: Optional[str] = None) -> Optional[str]:
    """
    Resolve the caller address.
    Prefers the first X-Forwarded-For hop, then X-Real-IP, then the socket peer.
    """
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return client_host


def sanitize_user_agent(user_agent: Optional[str]) -> Optional[str]:
    """Strip markup and cap the length of a user agent string"""
    if not user_agent:
        return None
    return _TAG_PATTERN.sub("", user_agent[:MAX_USER_AGENT_LENGTH])


def request_meta_from_headers(headers: Mapping[str, str], client_host: Optional[str] = None) -> RequestMeta:
    return RequestMeta(
        ip_address=extract_ip_address(headers, client_host),
        user_agent=sanitize_user_agent(headers.get("user-agent")),
    )
