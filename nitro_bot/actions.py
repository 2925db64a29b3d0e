from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .auth import AuthSession
from .client import RequestClient
from .config import Endpoints

ALREADY_CLAIMED_MARKER = "once every 24 hours"
DAILY_CLAIM_RULE = "DAILY_CLAIM"


@dataclass
class ClaimResult:
    already_claimed: bool = False
    claimed_amount: Any = None
    new_balance: Any = None
    streak_days: Any = None


@dataclass
class UserInfo:
    address: str = "Unknown"
    credits: Any = "N/A"


def get_public_ip(client: RequestClient, endpoints: Endpoints) -> str:
    res = client.request_with_retry('GET', endpoints.ip_check, headers=client.headers())
    if res.success and isinstance(res.data, dict) and res.data.get('ip'):
        return res.data['ip']
    if not res.success:
        client.logger.error(f"Failed to get IP: {res.message}")
    return "Unknown"


def perform_claim(client: RequestClient, session: AuthSession, endpoints: Endpoints) -> Optional[ClaimResult]:
    res = client.request_with_retry('POST', endpoints.claim, {}, headers=client.headers(token=session.token))
    if not res.success:
        error_msg = res.message or "Unknown error"
        status = res.status or "N/A"
        if ALREADY_CLAIMED_MARKER in error_msg:
            client.logger.warning(f"Already claimed: {error_msg} (Status: {status})")
            return ClaimResult(already_claimed=True)
        client.logger.error(f"Claim failed: {error_msg} (Status: {status})")
        return None
    data = res.data if isinstance(res.data, dict) else {}
    return ClaimResult(
        claimed_amount=data.get('claimedAmount'),
        new_balance=data.get('newBalance'),
        streak_days=data.get('streakDays'),
    )


def get_loyalty_rules(
    client: RequestClient,
    session: AuthSession,
    endpoints: Endpoints,
    rule_type: str = DAILY_CLAIM_RULE,
) -> Optional[List[Dict[str, Any]]]:
    url = f"{endpoints.loyalty_rules}?type={rule_type}"
    res = client.request_with_retry('GET', url, headers=client.headers(cookie=session.cookie))
    if not res.success:
        client.logger.error(f"Failed to fetch loyalties rules: {res.message}")
        return None
    payload = res.data
    if isinstance(payload, dict):
        payload = payload.get('data')
    if isinstance(payload, list):
        return [x for x in payload if isinstance(x, dict)]
    client.logger.error("Failed to fetch loyalties rules: unexpected response")
    return None


def rule_ids(rules: List[Dict[str, Any]]) -> List[Any]:
    return [r.get('id') for r in rules if r.get('id')]


def claim_loyalties(
    client: RequestClient,
    session: AuthSession,
    endpoints: Endpoints,
    ids: List[Any],
) -> Optional[Dict[str, Any]]:
    if not ids:
        client.logger.warning("No daily check-in rules available.")
        return None
    res = client.request_with_retry(
        'POST', endpoints.loyalty_rules, {'ruleIds': ids}, headers=client.headers(cookie=session.cookie)
    )
    if not res.success:
        client.logger.error(f"Failed to claim loyalties: {res.message}")
        return None
    return res.data if isinstance(res.data, dict) else {}


def fetch_user_info(client: RequestClient, session: AuthSession, endpoints: Endpoints) -> UserInfo:
    res = client.request_with_retry('GET', endpoints.user, headers=client.headers(token=session.token))
    if not res.success:
        client.logger.error(f"Failed to fetch user info: {res.message}")
        return UserInfo()
    data = res.data.get('data') if isinstance(res.data, dict) else None
    if not isinstance(data, dict):
        client.logger.error("Failed to fetch user info: unexpected response")
        return UserInfo()
    info = UserInfo()
    if data.get('walletAddress'):
        info.address = data['walletAddress']
    if data.get('credits') is not None:
        info.credits = data['credits']
    return info
