"""Tools for formatting task runner logs."""
import json
import logging
from datetime import datetime, timezone
from functools import lru_cache

from cumulus_ecs_task.constants import APP_NAME

MAX_THREAD_NAME_LEN = 12
MAX_NAME_LEN = 26

LOG_FORMAT = f"%(asctime)s.%(msecs)03d %(ct_level)5s --- [%(ct_thread){MAX_THREAD_NAME_LEN}s] %(ct_name)-{MAX_NAME_LEN}s : %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

CUSTOM_LEVEL_NAMES = {
    50: "FATAL",
    40: "ERROR",
    30: "WARN",
    20: "INFO",
    10: "DEBUG",
}


class DefaultFormatter(logging.Formatter):
    """
    A formatter that uses ``LOG_FORMAT`` and ``LOG_DATE_FORMAT``.
    """

    def __init__(self, fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT):
        super(DefaultFormatter, self).__init__(fmt=fmt, datefmt=datefmt)


class AddFormattedAttributes(logging.Filter):
    """
    Filter that adds three attributes to a log record:

    - ct_level: the abbreviated loglevel that's max 5 characters long
    - ct_name: the abbreviated name of the logger (e.g., `c.stepfunctions.poller`), trimmed to ``MAX_NAME_LEN``
    - ct_thread: the abbreviated thread name (prefix trimmed, .e.g, ``omeThread-108``)
    """

    max_name_len: int
    max_thread_len: int

    def __init__(self, max_name_len: int = None, max_thread_len: int = None):
        super(AddFormattedAttributes, self).__init__()
        self.max_name_len = max_name_len if max_name_len else MAX_NAME_LEN
        self.max_thread_len = max_thread_len if max_thread_len else MAX_THREAD_NAME_LEN

    def filter(self, record):
        record.ct_level = CUSTOM_LEVEL_NAMES.get(record.levelno, record.levelname)
        record.ct_name = self._get_compressed_logger_name(record.name)
        record.ct_thread = record.threadName[-self.max_thread_len :]
        return True

    @lru_cache(maxsize=256)
    def _get_compressed_logger_name(self, name):
        return compress_logger_name(name, self.max_name_len)


def compress_logger_name(name: str, length: int) -> str:
    """
    Creates a short version of a logger name. For example ``my.very.long.logger.name`` with length=17 turns into
    ``m.v.l.logger.name``.

    :param name: the logger name
    :param length: the max length of the logger name
    :return: the compressed name
    """
    if len(name) <= length:
        return name

    parts = name.split(".")
    parts.reverse()

    new_parts = []

    # we start by assuming that all parts are collapsed
    # x.x.x requires 5 = 2n - 1 characters
    cur_length = (len(parts) * 2) - 1

    for i in range(len(parts)):
        part = parts[i]
        next_len = cur_length + (len(part) - 1)

        if next_len > length:
            # add only the first letter of all remaining parts
            new_parts += [p[0] for p in parts[i:]]

            # if this is the first item we would display nothing, so show as much of the max length as possible
            if i == 0:
                remaining = length - cur_length
                if remaining > 0:
                    new_parts[0] = part[: (remaining + 1)]

            break

        new_parts.append(part)
        cur_length = next_len

    new_parts.reverse()
    return ".".join(new_parts)


class JsonFormatter(logging.Formatter):
    """
    Formats each record as a single-line JSON document with the keys ``level``, ``message``, ``sender`` and
    ``timestamp``. Tracebacks of error records are appended to the message with newlines replaced by spaces, so
    that every log record stays on one line in the container log stream.
    """

    def __init__(self, sender: str = APP_NAME):
        super().__init__()
        self.sender = sender

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.exc_info:
            if not record.exc_text:
                record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            message = f"{message} {record.exc_text}"
        if record.stack_info:
            message = f"{message} {self.formatStack(record.stack_info)}"

        document = {
            "level": record.levelname.lower(),
            "message": message.replace("\n", " "),
            "sender": self.sender,
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
        }
        return json.dumps(document)
