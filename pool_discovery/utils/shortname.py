import logging

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(shortname)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class ShortNameFilter(logging.Filter):
    """Adds ``record.shortname`` = last two dotted parts of the logger name."""

    def filter(self, record):
        path = record.name.split(".")
        record.shortname = "-".join(path[-2:])
        return True


def configure_logging(level=logging.INFO):
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    for handler in logging.getLogger().handlers:
        handler.addFilter(ShortNameFilter())
