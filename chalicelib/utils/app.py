import functools
from typing import Callable
from uuid import uuid4

from chalice import Response

from chalicelib.constants import status_codes
from chalicelib.utils import exceptions
from chalicelib.utils.logger import logger, log_exception

# Most specific first, the first match wins
EXCEPTION_STATUS_CODES = (
    (exceptions.ValidationError, status_codes.http400),
    (exceptions.NotAuthorizedException, status_codes.http401),
    (exceptions.AccessDenied, status_codes.http403),
    (exceptions.NotFoundError, status_codes.http404),
    (exceptions.InvalidTransitionError, status_codes.http409),
    (exceptions.ConflictError, status_codes.http409),
    (exceptions.PersistenceError, status_codes.http503),
)


def status_code_for(error: Exception) -> int:
    for exception_class, status_code in EXCEPTION_STATUS_CODES:
        if isinstance(error, exception_class):
            return status_code
    return status_codes.http500


def set_request_id(request):
    lambda_context = getattr(request, 'lambda_context', None)
    aws_request_id = getattr(lambda_context, 'aws_request_id', None) or str(uuid4())
    logger.current_request_id = aws_request_id.split('-')[-1]


def error_response(error: Exception, msg: str = "", status_code: int = 400, *args, **kwargs):
    log_exception(error=error, msg=msg, status_code=status_code, *args, **kwargs)
    return Response(
        body={
            'error': str(error) if status_code != status_codes.http500 else 'Internal server error',
            'exception': error.__class__.__name__,
            "message": str(msg),
            'error_id': getattr(logger, 'current_request_id'),
            'level': getattr(error, 'LEVEL', 'exception')
        },
        status_code=status_code,
        headers={'Content-Type': 'application/json'}
    )


def request_exception_handler(func: Callable):
    @functools.wraps(func)
    def result(*args, **kwargs):
        try:
            logger.info(f'Calling function {func.__name__}')
            return func(*args, **kwargs)
        except exceptions.AccessDenied as access_denied:
            return error_response(
                error=access_denied,
                msg="You don't have permissions to access this resource",
                status_code=status_codes.http403)
        except Exception as exception:
            # internals of unexpected errors stay in the log
            status_code = status_code_for(exception)
            msg = f'function = {func.__name__}, error = {exception}' if status_code != status_codes.http500 \
                else f'function = {func.__name__}, internal error'
            return error_response(error=exception, msg=msg, status_code=status_code)
    return result


def log_start_finish(func: Callable):
    @functools.wraps(func)
    def result(*args, **kwargs):
        logger.info(f'{func.__name__} ::: started')
        response = func(*args, **kwargs)
        logger.info(f'{func.__name__} ::: finished')
        return response
    return result
