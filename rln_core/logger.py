import logging, json, sys, time, os


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line; message text is escaped, not templated."""

    converter = time.gmtime  # UTC timestamps

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%SZ"),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def get_logger(name="RLN", level=None, to_file=None):
    """Unified structured logger for all RLN components.

    Level defaults to RLN_LOG_LEVEL (INFO when unset or not a level name).
    Handlers are attached once per logger name, so repeated calls are cheap.
    """
    logger = logging.getLogger(name)
    if level is None:
        level = os.getenv("RLN_LOG_LEVEL", "INFO").upper()
    if not isinstance(logging.getLevelName(level), int):
        level = "INFO"
    logger.setLevel(level)

    if not logger.handlers:
        formatter = JsonLineFormatter()
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

        if to_file:
            # Ensure the directory exists before writing
            os.makedirs(os.path.dirname(to_file) or ".", exist_ok=True)
            file_handler = logging.FileHandler(to_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger
