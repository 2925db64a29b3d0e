import os
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .client import PROXY_FALLBACK_DIRECT, PROXY_FALLBACK_FAIL, RetryPolicy
from .logger import get_logger

AUTH_API = "https://api-web.nitrograph.com/api"
BASE_API = "https://community.nitrograph.com/api"
SITE_URL = "https://community.nitrograph.com"
IP_CHECK_URL = "https://api.ipify.org?format=json"
CHAIN_ID = 200024

PRIVATE_KEYS_FILE = "pk.txt"
PROXIES_FILE = "proxy.txt"

COMMENT_PREFIXES = ('#', ';', '//')

log = get_logger()


def _to_bool(value, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return max(minimum, float(raw))
    except ValueError as exc:
        raise RuntimeError(f"Bad number for {name}: {raw}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"Bad integer for {name}: {raw}") from exc


@dataclass(frozen=True)
class Endpoints:
    auth_api: str = AUTH_API
    base_api: str = BASE_API
    site_url: str = SITE_URL
    ip_check: str = IP_CHECK_URL

    @property
    def nonce(self) -> str:
        return f"{self.auth_api}/auth/nonce"

    @property
    def verify(self) -> str:
        return f"{self.auth_api}/auth/verify"

    @property
    def claim(self) -> str:
        return f"{self.auth_api}/credits/claim"

    @property
    def user(self) -> str:
        return f"{self.auth_api}/users/me"

    @property
    def loyalty_rules(self) -> str:
        return f"{self.base_api}/loyalties/rules"

    @property
    def site_domain(self) -> str:
        return self.site_url.split("://", 1)[-1].rstrip("/")


@dataclass(frozen=True)
class BotConfig:
    private_keys: Tuple[str, ...]
    proxies: Tuple[str, ...] = ()
    use_proxy: bool = False
    proxy_fallback: str = PROXY_FALLBACK_FAIL
    endpoints: Endpoints = field(default_factory=Endpoints)
    chain_id: int = CHAIN_ID
    request_timeout: float = 60.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    account_delay: float = 5.0
    cycle_delay: float = 86400.0
    check_ip: bool = True

    def __post_init__(self):
        if self.proxy_fallback not in (PROXY_FALLBACK_FAIL, PROXY_FALLBACK_DIRECT):
            raise ValueError(f"Unknown proxy fallback policy: {self.proxy_fallback}")


def read_lines(path: str) -> List[str]:
    """Non-empty, non-comment lines of a text file, stripped."""
    entries = []
    with open(path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith(COMMENT_PREFIXES):
                continue
            entries.append(line)
    return entries


def read_private_keys(path: str = PRIVATE_KEYS_FILE) -> List[str]:
    try:
        keys = read_lines(path)
    except FileNotFoundError:
        log.error(f"File {path} not found")
        return []
    log.info(f"Loaded {len(keys)} private key{'' if len(keys) == 1 else 's'}")
    return keys


def read_proxies(path: str = PROXIES_FILE) -> List[str]:
    try:
        proxies = read_lines(path)
    except FileNotFoundError:
        log.warning(f"{path} not found.")
        return []
    if not proxies:
        log.warning("No proxies found. Proceeding without proxy.")
    else:
        log.info(f"Loaded {len(proxies)} prox{'y' if len(proxies) == 1 else 'ies'}")
    return proxies


def create_key_file(path: str = PRIVATE_KEYS_FILE) -> bool:
    """Creates a placeholder key file. Returns True when a usable file exists."""
    if not os.path.exists(path):
        with open(path, 'w', encoding='utf-8') as f:
            f.write("# one private key per line\n")
        log.warning(f"File {path} created. Add your private keys (one per line) and restart.")
        return False
    return True


def ask_use_proxy(input_func=input) -> bool:
    answer = input_func("Do You Want Use Proxy? (y/n): ")
    return answer.strip().lower() == 'y'


def load_config(
    *,
    keys_file: str = PRIVATE_KEYS_FILE,
    proxies_file: str = PROXIES_FILE,
    use_proxy: Optional[bool] = None,
    input_func=input,
) -> BotConfig:
    private_keys = read_private_keys(keys_file)

    if use_proxy is None:
        use_proxy = ask_use_proxy(input_func)
    proxies: List[str] = []
    if use_proxy:
        proxies = read_proxies(proxies_file)
        if not proxies:
            use_proxy = False
            log.warning("No proxies available, proceeding without proxy.")
    else:
        log.info("Proceeding without proxy.")

    endpoints = Endpoints(
        auth_api=os.getenv("NITRO_AUTH_API", AUTH_API).rstrip("/"),
        base_api=os.getenv("NITRO_BASE_API", BASE_API).rstrip("/"),
        site_url=os.getenv("NITRO_SITE_URL", SITE_URL).rstrip("/"),
    )
    return BotConfig(
        private_keys=tuple(private_keys),
        proxies=tuple(proxies),
        use_proxy=use_proxy,
        proxy_fallback=os.getenv("NITRO_PROXY_FALLBACK", PROXY_FALLBACK_FAIL).strip().lower(),
        endpoints=endpoints,
        chain_id=_env_int("NITRO_CHAIN_ID", CHAIN_ID),
        request_timeout=_env_float("NITRO_REQUEST_TIMEOUT", 60.0, minimum=1.0),
        account_delay=_env_float("NITRO_ACCOUNT_DELAY", 5.0),
        cycle_delay=_env_float("NITRO_CYCLE_DELAY", 86400.0),
        check_ip=_to_bool(os.getenv("NITRO_CHECK_IP"), True),
    )
