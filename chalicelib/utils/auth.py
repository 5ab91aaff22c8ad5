import functools

from chalice.app import Request

from chalicelib import dependencies
from chalicelib.constants.constants import KIND_USER
from chalicelib.utils import exceptions as utils_exceptions
from chalicelib.utils.app import set_request_id
from chalicelib.utils.logger import log_request, logger


def get_token(request: Request) -> str:
    header = (request.headers or {}).get('authorization')
    if not header:
        raise utils_exceptions.NotAuthorizedException('Authorization header is missing')
    if header.lower().startswith('bearer '):
        return header[len('bearer '):].strip()
    return header


def authenticate(func):
    """
    Wrapper for endpoints which require user's authentication.
    Resolves the token through the identity provider and attaches
    `auth_result` and a fresh `session` to the request.
    """

    @functools.wraps(func)
    def result_auth(request: Request, *args, **kwargs):
        set_request_id(request)
        log_request(request)
        token = get_token(request)
        user_id = dependencies.get_identity_provider().resolve(token)
        user = dependencies.get_repository().get_by_id(KIND_USER, user_id)
        if user is None:
            logger.warning(f'authenticate ::: token of unknown user {user_id}')
            raise utils_exceptions.NotAuthorizedException('Error occurred in authorization process')
        setattr(request, 'auth_result', {'user_id': user.id_, 'role': user.role})
        setattr(request, 'session', dependencies.new_session(user, token))
        result = func(request, *args, **kwargs)
        logger.info(f'authenticate ::: SUCCESS, func.__name__ {func.__name__}')
        return result

    return result_auth
