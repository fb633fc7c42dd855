import json
import logging
import sys

PACKAGE_LOGGER = "media_archive"


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        base = {
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False)


def set_debug(enabled: bool) -> None:
    """Флаг debug включает пошаговую трассировку пакета (fetch / dedup / store / deliver)."""
    if enabled:
        logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG)


def configure(level: str = "INFO", debug: bool = False) -> None:
    level_no = getattr(logging, level.upper(), logging.INFO)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=level_no, handlers=[handler])
    set_debug(debug)
