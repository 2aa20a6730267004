from config import load_settings
from domain.errors import ConfigError
from infrastructure.db.factory import build_repositories
from interfaces.discord.handlers import create_discord_bot
from logging_config import configure_logging


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level, log_json=settings.log_json)

    if not settings.discord_token:
        raise ConfigError("DISCORD_TOKEN environment variable is not set.")

    repos = build_repositories(settings)
    bot = create_discord_bot(repos)
    # discord.py installs its own log handler unless told not to.
    bot.run(settings.discord_token, log_handler=None)


if __name__ == "__main__":
    main()
