import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterator, Optional, Sequence

from . import actions
from .auth import derive_address, login
from .client import RequestClient, create_session
from .config import BotConfig
from .logger import get_logger

log = get_logger()


@dataclass(frozen=True)
class AccountJob:
    index: int
    total: int
    private_key: str
    proxy: Optional[str] = None

    @property
    def label(self) -> str:
        return f"Account {self.index + 1}/{self.total}"


@dataclass
class CycleReport:
    cycle: int
    total: int = 0
    completed: int = 0
    failed: int = 0


def proxy_for_index(index: int, proxies: Sequence[str]) -> Optional[str]:
    if not proxies:
        return None
    return proxies[index % len(proxies)]


def iter_accounts(config: BotConfig) -> Iterator[AccountJob]:
    """Accounts in file order, each paired with its round-robin proxy."""
    total = len(config.private_keys)
    proxies = config.proxies if config.use_proxy else ()
    for index, private_key in enumerate(config.private_keys):
        yield AccountJob(index, total, private_key, proxy_for_index(index, proxies))


class NitroAutoTask:
    def __init__(
        self,
        config: BotConfig,
        *,
        sleep: Callable[[float], None] = time.sleep,
        session_factory=create_session,
    ):
        self.config = config
        self.sleep = sleep
        self.session_factory = session_factory

    def make_client(self, job: AccountJob) -> RequestClient:
        return RequestClient(
            site_url=self.config.endpoints.site_url,
            proxy=job.proxy,
            proxy_fallback=self.config.proxy_fallback,
            policy=self.config.retry,
            timeout=self.config.request_timeout,
            session=self.session_factory(),
            sleep=self.sleep,
            logger=get_logger(job.label),
        )

    def process_wallet(self, job: AccountJob) -> bool:
        """Login, claim, check-in, profile. False when login fails."""
        logger = get_logger(job.label)
        endpoints = self.config.endpoints
        address = derive_address(job.private_key)
        logger.info("Starting account processing")
        client = self.make_client(job)
        try:
            if self.config.check_ip:
                logger.info(f"{'IP':<15}: {actions.get_public_ip(client, endpoints)}")
            logger.info(f"{'Address':<15}: {address}")

            logger.info("Starting login process...")
            session = login(client, job.private_key, endpoints, self.config.chain_id)
            if not session:
                logger.error("Login failed")
                return False
            logger.success("Login successful")

            logger.info("Starting daily $NITRO claim process...")
            claim = actions.perform_claim(client, session, endpoints)
            if claim and not claim.already_claimed:
                logger.success(
                    f"Claim successful: +{claim.claimed_amount} $NITRO, "
                    f"New Balance: {claim.new_balance}, Streak: {claim.streak_days}"
                )

            logger.info("Starting daily check-in process...")
            rules = actions.get_loyalty_rules(client, session, endpoints)
            if rules is None:
                logger.error("Failed to fetch daily check-in rules.")
            else:
                check_in = actions.claim_loyalties(client, session, endpoints, actions.rule_ids(rules))
                if check_in is not None:
                    logger.success(f"Check-in Successful: {check_in.get('message') or 'Completed'}")

            user_info = actions.fetch_user_info(client, session, endpoints)
            logger.info(f"{'Address':<15}: {user_info.address}")
            logger.info(f"{'Total $NITRO':<15}: {user_info.credits}")
            logger.success("Completed account processing")
            return True
        finally:
            client.close()

    def run_cycle(self, cycle: int = 1) -> CycleReport:
        report = CycleReport(cycle=cycle)
        log.info(f"CYCLE #{cycle} - {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        for job in iter_accounts(self.config):
            report.total += 1
            try:
                if self.process_wallet(job):
                    report.completed += 1
                else:
                    report.failed += 1
            except Exception as e:
                report.failed += 1
                get_logger(job.label).error(f"Error processing account: {e}")
            self.sleep(self.config.account_delay)
        log.info(f"CYCLE #{cycle} COMPLETE: {report.completed}/{report.total} accounts processed, {report.failed} failed")
        return report

    def run_continuous(self, max_cycles: Optional[int] = None):
        cycle = 1
        try:
            while True:
                self.run_cycle(cycle)
                if max_cycles is not None and cycle >= max_cycles:
                    break
                log.info(f"Cycle completed. Waiting {self.config.cycle_delay / 3600:g} Hours...")
                self.sleep(self.config.cycle_delay)
                cycle += 1
        except KeyboardInterrupt:
            log.warning("Bot stopped by user")
