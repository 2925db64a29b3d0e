import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from eth_account.messages import encode_defunct
from web3 import Web3

from .client import RequestClient, extract_set_cookies
from .config import CHAIN_ID, Endpoints

SESSION_COOKIE_NAME = "@nitrograph/session-v4"
SIGN_IN_STATEMENT = "Sign in to Nitrograph using your wallet"
# unreserved marks kept unescaped in the session cookie
URI_SAFE = "!'()*"

w3 = Web3()


def normalize_private_key(private_key: str) -> str:
    private_key = private_key.strip()
    if not private_key.startswith('0x'):
        private_key = '0x' + private_key
    if len(private_key) != 66:
        raise ValueError("Invalid private key length")
    return private_key


def derive_address(private_key: str) -> str:
    return w3.eth.account.from_key(normalize_private_key(private_key)).address


def issued_at_now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def create_sign_in_message(domain: str, address: str, uri: str, nonce: str, issued_at: str, chain_id: int = CHAIN_ID) -> str:
    return (
        f"{domain} wants you to sign in with your Ethereum account:\n"
        f"{address}\n\n"
        f"{SIGN_IN_STATEMENT}\n\n"
        f"URI: {uri}\n"
        f"Version: 1\n"
        f"Chain ID: {chain_id}\n"
        f"Nonce: {nonce}\n"
        f"Issued At: {issued_at}"
    )


def sign_message(private_key: str, message: str) -> str:
    signed = w3.eth.account.sign_message(encode_defunct(text=message), private_key=normalize_private_key(private_key))
    return Web3.to_hex(signed.signature)


@dataclass
class AuthSession:
    """Bearer token plus cookie string for one account, one cycle."""
    address: str
    token: str
    cookie: str
    expires_at: Any = None
    refresh_token: Optional[str] = None
    token_data: Dict[str, Any] = field(default_factory=dict)


def compose_cookie(set_cookies: List[str], session_data: Dict[str, Any]) -> str:
    server_pairs = "; ".join(c.split(';', 1)[0].strip() for c in set_cookies if c.strip())
    session_json = json.dumps(session_data, separators=(',', ':'))
    client_cookie = f"{SESSION_COOKIE_NAME}={quote(session_json, safe=URI_SAFE)}"
    if server_pairs:
        return f"{server_pairs}; {client_cookie}"
    return client_cookie


def get_nonce(client: RequestClient, endpoints: Endpoints) -> Optional[str]:
    res = client.request_with_retry('GET', endpoints.nonce)
    if not res.success:
        client.logger.error(f"Failed to fetch nonce: {res.message}")
        return None
    nonce = res.data.get('nonce') if isinstance(res.data, dict) else None
    if not nonce:
        client.logger.error("Failed to fetch nonce: empty response")
        return None
    return nonce


def login(client: RequestClient, private_key: str, endpoints: Endpoints, chain_id: int = CHAIN_ID) -> Optional[AuthSession]:
    """Nonce, signed message, verify. Returns None when any step fails."""
    logger = client.logger
    try:
        address = derive_address(private_key)
    except ValueError as e:
        logger.error(f"Failed to perform login: {e}")
        return None

    nonce = get_nonce(client, endpoints)
    if not nonce:
        logger.error("Failed to perform login: Failed to get nonce")
        return None

    message = create_sign_in_message(
        endpoints.site_domain, address, endpoints.site_url, nonce, issued_at_now(), chain_id
    )
    signature = sign_message(private_key, message)

    res = client.request_with_retry('POST', endpoints.verify, {'message': message, 'signature': signature})
    if not res.success:
        logger.error(f"Failed to perform login: {res.message}")
        return None

    data = res.data if isinstance(res.data, dict) else {}
    token = data.get('token')
    if not token:
        logger.error("Failed to perform login: no token in verify response")
        return None

    token_data = data.get('tokenData') or {}
    expires_at = data.get('expiresAt')
    refresh_token = data.get('refreshToken')
    session_data = {
        'token': token,
        'userId': token_data.get('userId'),
        'snagUserId': token_data.get('snagUserId'),
        'address': address,
        'chainId': token_data.get('chainId'),
        'expiresAt': expires_at,
        'newAccount': token_data.get('newAccount'),
        'refreshToken': refresh_token,
    }
    cookie = compose_cookie(extract_set_cookies(res.response), session_data)
    return AuthSession(
        address=address,
        token=token,
        cookie=cookie,
        expires_at=expires_at,
        refresh_token=refresh_token,
        token_data=token_data,
    )
