import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

import requests
from requests.adapters import HTTPAdapter

from .logger import get_logger

PROXY_FALLBACK_FAIL = "fail"
PROXY_FALLBACK_DIRECT = "direct"

HTTP_SCHEMES = ('http://', 'https://')
SOCKS_SCHEMES = ('socks4://', 'socks5://')

USER_AGENTS = [
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/134.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/15.0 Safari/605.1.15',
    'Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/105.0.0.0 Safari/537.36',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64) Firefox/102.0',
]

log = get_logger()


class UnsupportedProxyError(ValueError):
    pass


def get_random_user_agent() -> str:
    return random.choice(USER_AGENTS)


def get_global_headers(site_url: str, token: Optional[str] = None, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    headers = {
        'accept': '*/*',
        'accept-encoding': 'gzip, deflate, br',
        'accept-language': 'en-US,en;q=0.9',
        'content-type': 'application/json',
        'origin': site_url,
        'priority': 'u=1, i',
        'referer': f"{site_url}/",
        'sec-ch-ua': '"Chromium";v="134", "Not:A-Brand";v="24", "Google Chrome";v="134"',
        'sec-ch-ua-mobile': '?0',
        'sec-ch-ua-platform': '"Windows"',
        'sec-fetch-dest': 'empty',
        'sec-fetch-mode': 'cors',
        'sec-fetch-site': 'same-site',
        'user-agent': get_random_user_agent(),
    }
    if token:
        headers['authorization'] = f"Bearer {token}"
    if extra:
        headers.update(extra)
    return headers


class TunnelType(Enum):
    HTTP = "http"
    SOCKS = "socks"


@dataclass(frozen=True)
class ProxyTunnel:
    kind: TunnelType
    url: str

    def as_requests_proxies(self) -> Dict[str, str]:
        return {'http': self.url, 'https': self.url}


def select_tunnel(proxy: str, logger=log) -> Optional[ProxyTunnel]:
    """Picks the tunnel type from the proxy URI scheme, None if unsupported."""
    lowered = proxy.lower()
    if lowered.startswith(HTTP_SCHEMES):
        return ProxyTunnel(TunnelType.HTTP, proxy)
    if lowered.startswith(SOCKS_SCHEMES):
        return ProxyTunnel(TunnelType.SOCKS, proxy)
    logger.warning(f"Unsupported proxy: {proxy}")
    return None


def build_proxies(proxy: Optional[str], fallback: str = PROXY_FALLBACK_FAIL, logger=log) -> Optional[Dict[str, str]]:
    if not proxy:
        return None
    tunnel = select_tunnel(proxy, logger)
    if tunnel:
        return tunnel.as_requests_proxies()
    if fallback == PROXY_FALLBACK_DIRECT:
        logger.warning("Falling back to a direct connection")
        return None
    raise UnsupportedProxyError(f"Unsupported proxy scheme: {proxy}")


class Decision(Enum):
    RETRY = "retry"
    RATE_LIMITED = "rate_limited"
    STOP = "stop"


DEFAULT_STATUS_RULES = {
    429: Decision.RATE_LIMITED,
    400: Decision.STOP,
    404: Decision.STOP,
}


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 5
    backoff: float = 5.0
    multiplier: float = 1.5
    rate_limit_backoff: float = 30.0
    status_rules: Mapping[int, Decision] = field(default_factory=lambda: dict(DEFAULT_STATUS_RULES))

    def classify(self, status: Optional[int]) -> Decision:
        if status is None:
            return Decision.RETRY
        return self.status_rules.get(status, Decision.RETRY)


@dataclass
class RequestResult:
    success: bool
    data: Any = None
    response: Optional[requests.Response] = None
    message: str = ""
    status: Optional[int] = None

    @classmethod
    def ok(cls, data, response) -> "RequestResult":
        return cls(True, data=data, response=response, status=response.status_code)

    @classmethod
    def failed(cls, message: str, status: Optional[int] = None, response=None) -> "RequestResult":
        return cls(False, response=response, message=message, status=status)


def _json_or_text(response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text}


def error_message(response) -> str:
    payload = _json_or_text(response)
    if isinstance(payload, dict):
        for key in ('error', 'message'):
            if payload.get(key):
                return str(payload[key])
    if response.status_code in (400, 404):
        return "Bad request"
    reason = getattr(response, 'reason', None) or "Request failed"
    return f"{reason} (HTTP {response.status_code})"


def extract_set_cookies(response) -> List[str]:
    raw_headers = getattr(getattr(response, 'raw', None), 'headers', None)
    if raw_headers is not None and hasattr(raw_headers, 'getlist'):
        return list(raw_headers.getlist('Set-Cookie'))
    header = response.headers.get('set-cookie')
    return [header] if header else []


def create_session() -> requests.Session:
    session = requests.Session()
    # retries belong to RequestClient, not urllib3
    adapter = HTTPAdapter(max_retries=0, pool_connections=10, pool_maxsize=10)
    session.mount('https://', adapter)
    session.mount('http://', adapter)
    return session


class RequestClient:
    """Per-account HTTP client: one session, one proxy, one retry policy."""

    def __init__(
        self,
        *,
        site_url: str,
        proxy: Optional[str] = None,
        proxy_fallback: str = PROXY_FALLBACK_FAIL,
        policy: Optional[RetryPolicy] = None,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
        sleep=time.sleep,
        logger=log,
    ):
        self.site_url = site_url
        self.proxy = proxy
        self.policy = policy or RetryPolicy()
        self.timeout = timeout
        self.session = session if session is not None else create_session()
        self.sleep = sleep
        self.logger = logger
        self.proxies = build_proxies(proxy, proxy_fallback, logger)

    def headers(self, token: Optional[str] = None, cookie: Optional[str] = None) -> Dict[str, str]:
        extra = {'cookie': cookie} if cookie else None
        return get_global_headers(self.site_url, token, extra)

    def request_with_retry(
        self,
        method: str,
        url: str,
        payload: Any = None,
        headers: Optional[Dict[str, str]] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> RequestResult:
        method = method.upper()
        if method not in ('GET', 'POST'):
            raise ValueError(f"Method {method} not supported")
        policy = policy or self.policy
        kwargs = {
            'headers': headers if headers is not None else self.headers(),
            'timeout': self.timeout,
        }
        if self.proxies:
            kwargs['proxies'] = self.proxies
        if method == 'POST':
            kwargs['json'] = payload

        delay = policy.backoff
        message, status = "", None
        for attempt in range(1, policy.attempts + 1):
            response = None
            try:
                response = self.session.request(method, url, **kwargs)
            except requests.RequestException as e:
                message, status = str(e), None
            else:
                if response.status_code < 400:
                    return RequestResult.ok(_json_or_text(response), response)
                message, status = error_message(response), response.status_code

            decision = policy.classify(status)
            if decision is Decision.STOP:
                return RequestResult.failed(message, status, response)
            if decision is Decision.RATE_LIMITED:
                delay = policy.rate_limit_backoff
            if attempt < policy.attempts:
                self.logger.warning(
                    f"{method} {url} failed ({message}, status {status}), "
                    f"retry {attempt}/{policy.attempts - 1} in {delay:g}s..."
                )
                self.sleep(delay)
                delay *= policy.multiplier

        self.logger.error(f"Request failed after {policy.attempts} attempts: {message} - Status: {status}")
        return RequestResult.failed(message, status)

    def close(self):
        self.session.close()
