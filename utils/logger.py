import logging

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def map_log_level(level_name: str) -> int:
    level = getattr(logging, (level_name or "INFO").upper(), None)
    return level if isinstance(level, int) else logging.INFO


def configure_logging(level_name: str = "INFO") -> logging.Logger:
    """
    Installs a single console handler on the root logger.
    Safe to call more than once (e.g. one app per test).
    """
    root = logging.getLogger()
    level = map_log_level(level_name)

    if not any(getattr(h, "_otpgate", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._otpgate = True
        root.addHandler(handler)

    root.setLevel(level)
    return root
