#!/usr/bin/env python3
"""
Quiz Flow bot launcher.

Reads config.json (or the file named by QUIZ_FLOW_CONFIG), configures
logging and starts the Discord bot that hosts the quiz widget.

    cp config.example.json config.json
    python main.py

The "quiz" block sets the quiz URL, the per-question countdown (at most
30 seconds) and the request timeout. DISCORD_BOT_TOKEN, when set, wins
over the token stored in the config file.
"""

import asyncio
import sys
import os
import json
import logging
from pathlib import Path

PLACEHOLDER_TOKEN = "YOUR_DISCORD_BOT_TOKEN_HERE"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def fail(*lines):
    """Print an error for the operator and exit."""
    for line in lines:
        print(line)
    sys.exit(1)


def load_config():
    """Read the JSON config file into a dict."""
    config_path = Path(os.getenv('QUIZ_FLOW_CONFIG', 'config.json'))

    if not config_path.is_file():
        fail(
            f"❌ Error: {config_path} not found!",
            "Copy config.example.json to config.json and add your Discord bot token."
        )

    try:
        config = json.loads(config_path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        fail(f"❌ Error: {config_path} is not valid JSON: {e}")
    except OSError as e:
        fail(f"❌ Error: could not read {config_path}: {e}")

    if not isinstance(config, dict):
        fail(f"❌ Error: {config_path} must contain a JSON object")
    return config


def get_bot_token(config):
    """Resolve the bot token, preferring the DISCORD_BOT_TOKEN environment variable."""
    token = os.getenv('DISCORD_BOT_TOKEN') or config.get('bot', {}).get('token')
    if not token or token == PLACEHOLDER_TOKEN:
        fail(
            "❌ Error: Discord bot token not configured!",
            "Set DISCORD_BOT_TOKEN or fill in bot.token in config.json."
        )
    return token


def setup_logging_from_config(config):
    """Log to the console and to <log_directory>/bot.log."""
    log_config = config.get('logging', {})
    level_name = str(log_config.get('level', 'INFO')).upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    log_file = Path(log_config.get('log_directory', './logs/')) / "bot.log"
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_file, encoding='utf-8')
        ]
    )

    # Gateway and HTTP chatter from discord.py
    for noisy in ('discord', 'discord.http', 'discord.gateway'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging to {log_file} at level {logging.getLevelName(log_level)}")


async def main():
    config = load_config()
    setup_logging_from_config(config)

    from quiz_flow.bot import run_bot
    await run_bot(get_bot_token(config), config)


if __name__ == "__main__":
    print("🤖 Starting Quiz Flow bot...")
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n👋 Quiz Flow bot stopped")
