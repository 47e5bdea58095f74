"""Command-line entry point for Chat Voice Bot."""

from __future__ import annotations

import argparse
import asyncio
import sys

from chat_voice_bot.config import BotConfig, ConfigValidationError, create_example_config, load_config
from chat_voice_bot.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


def create_argument_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog='chat-voice-bot',
        description='Chat Voice Bot - reads Twitch chat and speaks AI replies'
    )

    # Config file (loaded first, CLI args override)
    parser.add_argument('--config', default=None,
                        help='Path to config.yaml')
    parser.add_argument('--init-config', action='store_true',
                        help='Write an example config (to --config or config.yaml) and exit')

    # Logging settings
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Log level')
    parser.add_argument('--log-json', action='store_true',
                        help='Output logs in JSON format')
    parser.add_argument('--log-file', default=None,
                        help='Log file path (JSON format)')

    # Chat settings
    parser.add_argument('--channel', default=None,
                        help='Twitch channel to read')

    # Reply settings
    parser.add_argument('--cooldown', type=float, default=None,
                        help='Seconds between replies')
    parser.add_argument('--text-provider', default=None,
                        help='Text provider id to try first')
    parser.add_argument('--voice', default=None,
                        help='Voice name (e.g. Kore, Puck, Charon, Fenrir, Zephyr)')
    parser.add_argument('--no-audio', action='store_true',
                        help='Do not synthesize or play speech')

    return parser


def apply_cli_overrides(args: argparse.Namespace, config: BotConfig) -> BotConfig:
    """Apply CLI arguments on top of the loaded config (CLI takes precedence).

    Args:
        args: Parsed CLI arguments.
        config: Loaded BotConfig.

    Returns:
        The same config, updated in place.

    Raises:
        ConfigValidationError: If an override names an unknown provider.
    """
    if args.channel:
        config.chat.channel = args.channel.lstrip('#')
    if args.cooldown is not None:
        if args.cooldown < 0:
            raise ConfigValidationError(f"--cooldown must be >= 0, got {args.cooldown}")
        config.bot.response_cooldown = args.cooldown
    if args.text_provider:
        known = [p.id for p in config.text.providers]
        if args.text_provider not in known:
            raise ConfigValidationError(f"--text-provider '{args.text_provider}' is not configured: {known}")
        config.text.preferred = args.text_provider
    if args.voice:
        config.voice.voice = args.voice
    if args.no_audio:
        config.audio.enabled = False
    return config


def main(argv: list[str] | None = None) -> int:
    """Run the bot.

    Returns:
        Process exit code.
    """
    args = create_argument_parser().parse_args(argv)

    setup_logging(level=args.log_level, json_output=args.log_json, log_file=args.log_file)

    if args.init_config:
        create_example_config(args.config or 'config.yaml')
        return 0

    try:
        config = apply_cli_overrides(args, load_config(args.config))
    except ConfigValidationError as e:
        logger.error(str(e))
        return 2

    from chat_voice_bot.app import ChatVoiceBot
    from chat_voice_bot.presenter import ConsolePresenter

    try:
        bot = ChatVoiceBot.from_config(config, observers=[ConsolePresenter()])
    except ValueError as e:
        logger.error(str(e))
        return 2

    try:
        asyncio.run(bot.run())
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == '__main__':
    sys.exit(main())
