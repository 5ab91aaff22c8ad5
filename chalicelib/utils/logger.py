import json
import os
from copy import deepcopy
from datetime import datetime, date
from decimal import Decimal
from logging import setLoggerClass, Logger, NOTSET, getLogger, StreamHandler, Formatter

from chalice.app import Request

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(threadName)s - %(message)s'
HIDDEN_HEADERS = ('authorization', 'cookie')


class RequestLogger(Logger):
    """ Prefixes every message with the id of the request being handled """

    def __init__(self, name, level=NOTSET):
        self.current_request_id = None
        super(RequestLogger, self).__init__(name, level)

    def _log(self, level, msg, args, **kwargs):
        super(RequestLogger, self)._log(level, f'[{self.current_request_id}] : {msg}', args, **kwargs)


def conf_logger(level: str) -> RequestLogger:
    setLoggerClass(RequestLogger)
    logger_ = getLogger('food_delivery')
    handler = StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(Formatter(LOG_FORMAT))
    logger_.handlers.clear()
    logger_.addHandler(handler)
    logger_.setLevel(level)
    logger_.propagate = False
    return logger_


logger = conf_logger(os.environ.get('LOG_LEVEL', 'DEBUG').upper())


class CustomJSONEncoder(json.JSONEncoder):
    def default(self, value):
        if isinstance(value, (datetime, date)):
            return value.isoformat()
        if isinstance(value, Decimal):
            return float(value)
        if isinstance(value, (set, frozenset, tuple)):
            return list(value)
        if hasattr(value, 'to_ui'):
            return value.to_ui()
        return super(CustomJSONEncoder, self).default(value)


def log_request(request: Request):
    request_dict = deepcopy(request.to_dict())
    headers = request_dict.get('headers') or {}
    for header in HIDDEN_HEADERS:
        headers.pop(header, None)
    logger.info(f"Request: {request_dict.get('method')} {request_dict.get('path')} "
                f"{json.dumps(request_dict, cls=CustomJSONEncoder)}")
    if headers.get('content-type', '') == 'application/json':
        logger.debug(f"Request body: {request.raw_body}")


LOG_LEVELS = ('debug', 'info', 'warning', 'error', 'exception')


def log_exception(error: Exception, status_code: int = 400, msg: str = "", *args, **kwargs):
    """ One JSON line per handled error, logged at the error class LEVEL """
    level = getattr(error, 'LEVEL', 'exception')
    if level not in LOG_LEVELS:
        level = 'exception'
    getattr(logger, level)(json.dumps({
        'error': str(error),
        'exception': error.__class__.__name__,
        'message': str(msg),
        'level': level,
        'status_code': status_code,
        'args': args,
        'kwargs': kwargs
    }, cls=CustomJSONEncoder))
