import argparse
import sys

from nitro_bot.config import PRIVATE_KEYS_FILE, PROXIES_FILE, create_key_file, load_config
from nitro_bot.driver import NitroAutoTask
from nitro_bot.logger import get_logger, setup_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Nitrograph daily claim & check-in bot")
    parser.add_argument("--keys", default=PRIVATE_KEYS_FILE, help="private key list, one per line")
    parser.add_argument("--proxies", default=PROXIES_FILE, help="proxy list, one URI per line")
    proxy_group = parser.add_mutually_exclusive_group()
    proxy_group.add_argument("--proxy", dest="use_proxy", action="store_true", default=None,
                             help="use proxies without asking")
    proxy_group.add_argument("--no-proxy", dest="use_proxy", action="store_false", default=None,
                             help="run without proxies without asking")
    parser.add_argument("--once", action="store_true", help="run a single cycle and exit")
    parser.add_argument("--log-level", default=None)
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    log = get_logger()
    log.info("NITROGRAPH AUTO CLAIM DAILY $NITRO & CHECKIN")

    if not create_key_file(args.keys):
        return 1
    try:
        config = load_config(keys_file=args.keys, proxies_file=args.proxies, use_proxy=args.use_proxy)
        if not config.private_keys:
            log.error(f"No private keys found in {args.keys}. Exiting.")
            return 1
        bot = NitroAutoTask(config)
        bot.run_continuous(max_cycles=1 if args.once else None)
    except KeyboardInterrupt:
        log.warning("Bot stopped by user")
    except Exception as e:
        log.exception(f"Fatal error: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
