"""
Process-wide wiring of the repository, identity provider and lifecycle engine.
Built lazily from environment variables, `reset()` drops everything so the next call rebuilds.
"""
import os
import threading

from chalicelib.constants.constants import STORAGE_BACKEND_MEMORY, STORAGE_BACKEND_DYNAMODB, \
    IDENTITY_PROVIDER_LOCAL, IDENTITY_PROVIDER_COGNITO
from chalicelib.utils.logger import logger

_lock = threading.RLock()
_repository = None
_identity_provider = None
_lifecycle = None


def get_repository():
    global _repository
    with _lock:
        if _repository is None:
            from chalicelib.repositories import InMemoryRepository, DynamoDBRepository
            backend = os.environ.get('STORAGE_BACKEND', STORAGE_BACKEND_MEMORY)
            if backend == STORAGE_BACKEND_MEMORY:
                _repository = InMemoryRepository()
            elif backend == STORAGE_BACKEND_DYNAMODB:
                if not os.environ.get('GEN_TABLE_NAME'):
                    raise RuntimeError('GEN_TABLE_NAME must be set for the dynamodb storage backend')
                _repository = DynamoDBRepository()
            else:
                raise RuntimeError(f'Unknown STORAGE_BACKEND={backend}')
            logger.info(f'get_repository ::: {_repository.__class__.__name__} ready')
        return _repository


def get_identity_provider():
    global _identity_provider
    with _lock:
        if _identity_provider is None:
            from chalicelib.auth import LocalIdentityProvider, CognitoIdentityProvider
            provider = os.environ.get('IDENTITY_PROVIDER', IDENTITY_PROVIDER_LOCAL)
            if provider == IDENTITY_PROVIDER_LOCAL:
                _identity_provider = LocalIdentityProvider(get_repository())
            elif provider == IDENTITY_PROVIDER_COGNITO:
                _identity_provider = CognitoIdentityProvider(
                    get_repository(),
                    pool_id=os.environ['COGNITO_POOL_ID'],
                    client_id=os.environ['COGNITO_CLIENT_ID'],
                    region=os.environ.get('AWS_REGION', 'eu-central-1')
                )
            else:
                raise RuntimeError(f'Unknown IDENTITY_PROVIDER={provider}')
            logger.info(f'get_identity_provider ::: {_identity_provider.__class__.__name__} ready')
        return _identity_provider


def get_lifecycle():
    global _lifecycle
    with _lock:
        if _lifecycle is None:
            from chalicelib.lifecycle import OrderLifecycle
            _lifecycle = OrderLifecycle(get_repository())
        return _lifecycle


def new_session(user, token=None):
    from chalicelib.auth import Session
    return Session(user, token)


def reset():
    global _repository, _identity_provider, _lifecycle
    with _lock:
        _repository = None
        _identity_provider = None
        _lifecycle = None
