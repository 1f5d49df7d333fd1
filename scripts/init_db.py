"""Initialize the ledger database."""

import structlog

from src.ledger.config import load_config
from src.ledger.logging import configure_logging


def main() -> None:
    config = load_config()
    configure_logging(config.settings.log_level, json=config.settings.log_json)
    structlog.get_logger(__name__).info(
        "db.initialized", url=config.engine.url.render_as_string(hide_password=True)
    )
    config.engine.dispose()


if __name__ == "__main__":
    main()
