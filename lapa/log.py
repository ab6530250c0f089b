#################################################################################################
# Lapa
#
# A minimalist web micro-framework
#
# (C) 2025 Lapa contributors, MIT License
#
#################################################################################################
"""
Logging setup. Every framework module logs through the "lapa" logger; the
application attaches one DailyFileHandler that appends to <logs>/YYYY-MM-DD.log.
"""
import datetime
import logging
import os

LOGGER_NAME = "lapa"
LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class DailyFileHandler(logging.FileHandler):
    """Append-only handler that switches to a new file when the date changes."""

    def __init__(self, directory, tz=None, encoding="utf-8"):
        self.directory = directory
        self.tz = tz
        self._day = self._today()
        super().__init__(self._filename(self._day), mode="a", encoding=encoding, delay=True)

    def _today(self):
        return datetime.datetime.now(self.tz).strftime("%Y-%m-%d")

    def _filename(self, day):
        return os.path.join(self.directory, day + ".log")

    def emit(self, record):
        day = self._today()
        if day != self._day:
            self.acquire()
            try:
                self.close()
                self._day = day
                self.baseFilename = os.path.abspath(self._filename(day))
            finally:
                self.release()
        super().emit(record)


def setup_logging(directory, level="info", tz=None):
    """Attach a fresh DailyFileHandler to the lapa logger and return the logger."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        if isinstance(handler, DailyFileHandler):
            logger.removeHandler(handler)
            handler.close()

    handler = DailyFileHandler(directory, tz=tz)
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    if tz is not None:
        formatter.converter = lambda secs: datetime.datetime.fromtimestamp(secs, tz).timetuple()
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    return logger
