from __future__ import annotations

import argparse
import logging
import sys
from threading import Thread
from typing import Iterable, List, Optional, TextIO, Tuple

from prayerline.cache_store import CacheStore, FileByteStore
from prayerline.command_runner import SubprocessCommandRunner, WrappedCommand
from prayerline.config import AppConfig, ConfigError, ConfigLoader
from prayerline.location import IpLocationClient
from prayerline.logging_utils import LoggerFactory
from prayerline.next_event import format_minutes
from prayerline.service import Clock, Countdown, CountdownService, SystemClock, epoch_ms


GREEN = "\x1b[32m"
RESET = "\x1b[0m"


def main(
    argv: Optional[Iterable[str]] = None,
    *,
    stdin: Optional[TextIO] = None,
    stdout: Optional[TextIO] = None,
    clock: Optional[Clock] = None,
) -> int:
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    own_args, wrapped_args = _split_wrapped(list(sys.argv[1:] if argv is None else argv))
    args = _parse_args(own_args)

    config: Optional[AppConfig] = None
    try:
        config = ConfigLoader(config_dir=args.config_dir).load()
    except ConfigError as exc:
        LoggerFactory.create("")
        logging.getLogger("prayerline").error("Config error: %s", exc)

    if config is not None:
        LoggerFactory.create(
            "", log_file=config.logging.file_path, level=config.logging.level
        )
    logger = logging.getLogger("prayerline")

    stdin_timeout = config.statusline.stdin_timeout_seconds if config else 3
    wrapped_timeout = config.statusline.wrapped_timeout_seconds if config else 5
    stdin_text = read_stdin(stdin, timeout=stdin_timeout)

    wrapped = WrappedCommand(
        runner=SubprocessCommandRunner(),
        args=wrapped_args,
        timeout_seconds=wrapped_timeout,
    )
    existing_output = wrapped.output(stdin_text)

    prayer_line = ""
    if config is not None:
        try:
            countdown = _build_service(config, clock or SystemClock()).countdown()
            if countdown is not None:
                prayer_line = render_line(countdown, color=config.statusline.color)
        except Exception:
            # The countdown is an optional extra; never break the host's status line.
            logger.exception("Prayer countdown failed")

    if existing_output:
        stdout.write(existing_output)
    if prayer_line:
        stdout.write(prayer_line)
    stdout.flush()
    return 0


def render_line(countdown: Countdown, *, color: bool = True) -> str:
    text = f"{countdown.event.name} in {format_minutes(countdown.event.minutes_left)}"
    if countdown.location.city:
        text = f"{text} ({countdown.location.city})"
    if color:
        text = f"{GREEN}{text}{RESET}"
    return f"{text}\n"


def read_stdin(stream: TextIO, *, timeout: float) -> str:
    """Read the host's JSON context, giving up after ``timeout`` seconds."""
    if stream.isatty():
        return "{}"
    chunks: List[str] = []

    def drain() -> None:
        try:
            chunks.append(stream.read())
        except (OSError, ValueError) as exc:
            logging.getLogger("prayerline").info("stdin unavailable: %s", exc)

    reader = Thread(target=drain, daemon=True)
    reader.start()
    reader.join(timeout)
    return "".join(chunks) or "{}"


def _build_service(config: AppConfig, clock: Clock) -> CountdownService:
    cache_store = CacheStore(
        FileByteStore(config.cache.file_path), now_ms=lambda: epoch_ms(clock.now())
    )
    locator = IpLocationClient(
        url=config.lookup.ip_url,
        timeout_seconds=config.lookup.ip_timeout_seconds,
    )
    return CountdownService(
        cache_store=cache_store,
        locator=locator,
        calculation=config.calculation,
        fixed_location=config.location,
        clock=clock,
    )


def _split_wrapped(argv: List[str]) -> Tuple[List[str], List[str]]:
    # Everything after the first "--" is the wrapped status-line command.
    if "--" not in argv:
        return argv, []
    index = argv.index("--")
    return argv[:index], argv[index + 1 :]


def _parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="prayerline",
        description="Append a prayer time countdown to a status line",
        epilog="Arguments after -- are run as the wrapped status-line command.",
    )
    parser.add_argument("--config-dir", help="Directory holding config.yml")
    return parser.parse_args(argv)


if __name__ == "__main__":
    raise SystemExit(main())
