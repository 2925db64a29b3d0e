import pytest
import requests

from conftest import TEST_PRIVATE_KEY, FakeResponse, FakeSession, RecordingSleep
from nitro_bot.config import BotConfig, Endpoints
from nitro_bot.driver import NitroAutoTask, iter_accounts, proxy_for_index

SECOND_PRIVATE_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
ENDPOINTS = Endpoints()


def happy_routes():
    return {
        ('GET', ENDPOINTS.ip_check): FakeResponse(200, {'ip': '203.0.113.7'}),
        ('GET', ENDPOINTS.nonce): FakeResponse(200, {'nonce': 'nonce-1'}),
        ('POST', ENDPOINTS.verify): FakeResponse(200, {
            'token': 'jwt',
            'tokenData': {'userId': 'u', 'snagUserId': 's', 'chainId': 200024, 'newAccount': False},
            'expiresAt': '2026-10-19T00:00:00Z',
            'refreshToken': 'r',
        }, set_cookies=["session_v1=s1; Path=/"]),
        ('POST', ENDPOINTS.claim): FakeResponse(200, {'claimedAmount': 5, 'newBalance': 50, 'streakDays': 2}),
        ('GET', ENDPOINTS.loyalty_rules): FakeResponse(200, [{'id': 'rule-1'}]),
        ('POST', ENDPOINTS.loyalty_rules): FakeResponse(200, {'message': 'ok'}),
        ('GET', ENDPOINTS.user): FakeResponse(200, {'data': {'walletAddress': '0xabc', 'credits': 50}}),
    }


class SessionFactory:
    def __init__(self, *sessions):
        self.pending = list(sessions)
        self.created = []

    def __call__(self):
        session = self.pending.pop(0) if self.pending else FakeSession(happy_routes())
        self.created.append(session)
        return session


def step_order(session):
    return [(c.method, c.url.split('?', 1)[0]) for c in session.calls]


@pytest.mark.parametrize("proxy_count", [1, 2, 3, 7])
def test_proxy_round_robin(proxy_count):
    proxies = [f"http://10.0.0.{i}:8080" for i in range(proxy_count)]
    for index in range(20):
        assert proxy_for_index(index, proxies) == proxies[index % proxy_count]


def test_no_proxies_means_direct():
    assert proxy_for_index(3, []) is None


def test_iter_accounts_preserves_file_order():
    config = BotConfig(private_keys=("k1", "k2", "k3"), proxies=("http://a:1", "http://b:2"), use_proxy=True)
    jobs = list(iter_accounts(config))
    assert [j.private_key for j in jobs] == ["k1", "k2", "k3"]
    assert [j.proxy for j in jobs] == ["http://a:1", "http://b:2", "http://a:1"]
    assert jobs[2].label == "Account 3/3"


def test_iter_accounts_ignores_proxies_when_disabled():
    config = BotConfig(private_keys=("k1",), proxies=("http://a:1",), use_proxy=False)
    assert next(iter_accounts(config)).proxy is None


def test_two_accounts_then_cooldown():
    config = BotConfig(private_keys=(TEST_PRIVATE_KEY, SECOND_PRIVATE_KEY))
    sleep = RecordingSleep(stop_at=86400.0)
    factory = SessionFactory()
    NitroAutoTask(config, sleep=sleep, session_factory=factory).run_continuous()

    assert sleep.calls == [5.0, 5.0, 86400.0]
    assert len(factory.created) == 2
    expected = [
        ('GET', "https://api.ipify.org"),
        ('GET', ENDPOINTS.nonce),
        ('POST', ENDPOINTS.verify),
        ('POST', ENDPOINTS.claim),
        ('GET', ENDPOINTS.loyalty_rules),
        ('POST', ENDPOINTS.loyalty_rules),
        ('GET', ENDPOINTS.user),
    ]
    for session in factory.created:
        assert step_order(session) == expected
        assert session.closed


def test_accounts_get_independent_sessions():
    config = BotConfig(private_keys=(TEST_PRIVATE_KEY, SECOND_PRIVATE_KEY), check_ip=False)
    factory = SessionFactory()
    NitroAutoTask(config, sleep=RecordingSleep(), session_factory=factory).run_cycle()
    first, second = factory.created
    assert first is not second
    first_verify = first.calls_to(ENDPOINTS.verify)[0].json
    second_verify = second.calls_to(ENDPOINTS.verify)[0].json
    assert first_verify['signature'] != second_verify['signature']


def test_nonce_failure_skips_account_and_continues():
    config = BotConfig(private_keys=(TEST_PRIVATE_KEY, SECOND_PRIVATE_KEY), check_ip=False)
    failing = FakeSession({('GET', ENDPOINTS.nonce): requests.ConnectionError("down")})
    factory = SessionFactory(failing)
    sleep = RecordingSleep()
    report = NitroAutoTask(config, sleep=sleep, session_factory=factory).run_cycle()

    assert (report.total, report.completed, report.failed) == (2, 1, 1)
    assert len(failing.calls_to(ENDPOINTS.nonce)) == 5
    assert failing.calls_to(ENDPOINTS.verify) == []
    assert len(factory.created[1].calls_to(ENDPOINTS.user)) == 1
    assert sleep.calls == pytest.approx([5.0, 7.5, 11.25, 16.875, 5.0, 5.0])


def test_bad_key_is_isolated():
    config = BotConfig(private_keys=("0x1234", TEST_PRIVATE_KEY), check_ip=False)
    factory = SessionFactory()
    report = NitroAutoTask(config, sleep=RecordingSleep(), session_factory=factory).run_cycle()
    assert (report.completed, report.failed) == (1, 1)
    assert len(factory.created) == 1


def test_unsupported_proxy_fails_closed():
    config = BotConfig(
        private_keys=(TEST_PRIVATE_KEY, SECOND_PRIVATE_KEY),
        proxies=("ftp://10.0.0.1:21", "socks5://10.0.0.2:1080"),
        use_proxy=True,
        check_ip=False,
    )
    factory = SessionFactory()
    report = NitroAutoTask(config, sleep=RecordingSleep(), session_factory=factory).run_cycle()
    assert (report.completed, report.failed) == (1, 1)
    # the skipped account never sends a request
    assert factory.created[0].calls == []
    assert factory.created[1].calls[0].proxies['https'] == "socks5://10.0.0.2:1080"


def test_unsupported_proxy_direct_fallback():
    config = BotConfig(
        private_keys=(TEST_PRIVATE_KEY,),
        proxies=("ftp://10.0.0.1:21",),
        use_proxy=True,
        proxy_fallback="direct",
        check_ip=False,
    )
    factory = SessionFactory()
    report = NitroAutoTask(config, sleep=RecordingSleep(), session_factory=factory).run_cycle()
    assert report.completed == 1
    assert 'proxies' not in vars(factory.created[0].calls[0])


def test_already_claimed_does_not_stop_check_in():
    routes = happy_routes()
    routes[('POST', ENDPOINTS.claim)] = FakeResponse(400, {'error': 'Can only claim once every 24 hours'})
    session = FakeSession(routes)
    config = BotConfig(private_keys=(TEST_PRIVATE_KEY,), check_ip=False)
    report = NitroAutoTask(config, sleep=RecordingSleep(), session_factory=SessionFactory(session)).run_cycle()
    assert report.completed == 1
    assert len(session.calls_to(ENDPOINTS.loyalty_rules)) == 2


def test_max_cycles_bounds_the_loop():
    config = BotConfig(private_keys=(TEST_PRIVATE_KEY,), check_ip=False, cycle_delay=60.0)
    sleep = RecordingSleep()
    NitroAutoTask(config, sleep=sleep, session_factory=SessionFactory()).run_continuous(max_cycles=2)
    assert sleep.calls == [5.0, 60.0, 5.0]
