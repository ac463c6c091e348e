import logging
import os
import sys
import tempfile
from logging.handlers import RotatingFileHandler

LOG_FILE_NAME = "timeclock.log"


class ColoredFormatter(logging.Formatter):
    """Console formatter: coloured level names and highlighted log tags"""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    HIGHLIGHTS = (
        ("[CRON]", "\033[34m"),
        ("[RECONCILE]", "\033[94m"),
        ("[OVERRIDE]", "\033[91m"),
        ("[OFFLINE]", "\033[93m"),
        ("[SSE]", "\033[96m"),
        ("Remote Store", "\033[95m"),
    )
    RESET = "\033[0m"
    BOLD = "\033[1m"

    def __init__(self, *args, use_color=True, **kwargs):
        super().__init__(*args, **kwargs)
        self.use_color = use_color

    def format(self, record):
        message = super().format(record)
        if not self.use_color:
            return message

        color = self.LEVEL_COLORS.get(record.levelname)
        if color:
            message = message.replace(
                record.levelname, f"{color}{self.BOLD}{record.levelname}{self.RESET}", 1
            )

        for marker, marker_color in self.HIGHLIGHTS:
            if marker in message:
                message = message.replace(marker, f"{marker_color}{marker}{self.RESET}")

        return message


def get_user_log_dir():
    """First writable log directory: TIMECLOCK_LOG_DIR, the per-user data dir, then tmp"""
    candidates = []
    if os.getenv("TIMECLOCK_LOG_DIR"):
        candidates.append(os.getenv("TIMECLOCK_LOG_DIR"))

    if os.name == "nt":
        appdata = os.getenv("LOCALAPPDATA") or os.getenv("APPDATA")
        if appdata:
            candidates.append(os.path.join(appdata, "Timeclock", "logs"))
    else:
        state_home = os.getenv("XDG_STATE_HOME") or os.path.join(
            os.path.expanduser("~"), ".local", "state"
        )
        candidates.append(os.path.join(state_home, "timeclock"))

    candidates.append(os.path.join(tempfile.gettempdir(), "timeclock"))

    for log_dir in candidates:
        try:
            os.makedirs(log_dir, exist_ok=True)
        except OSError:
            continue
        if os.access(log_dir, os.W_OK):
            return log_dir

    return os.getcwd()


def create_log_handler():
    """Rotating file handler; size comes from LOG_FILE_SIZE"""
    handler = RotatingFileHandler(
        os.path.join(get_user_log_dir(), LOG_FILE_NAME),
        maxBytes=int(os.getenv("LOG_FILE_SIZE", 10485760)),
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(
        logging.Formatter("[%(asctime)s] %(levelname)s in %(module)s: %(message)s")
    )
    return handler


def create_console_handler():
    use_color = sys.stdout.isatty() and not os.getenv("NO_COLOR")
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        ColoredFormatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            use_color=use_color,
        )
    )
    return console_handler


def _configure(logger):
    if logger.handlers:
        return logger

    try:
        logger.addHandler(create_log_handler())
    except OSError as e:
        sys.stderr.write(f"timeclock: file logging disabled: {e}\n")
    logger.addHandler(create_console_handler())

    logger.setLevel(os.getenv("TIMECLOCK_LOG_LEVEL", "INFO").upper())
    # Own handlers only; the root logger would print everything twice
    logger.propagate = False
    return logger


app_logger = _configure(logging.getLogger("timeclock"))
