import hashlib
import hmac
import secrets
import threading
from abc import ABC, abstractmethod
from typing import Dict, NamedTuple, Optional

import jwt
from botocore.exceptions import ClientError
from chalice import Response
from pycognito import Cognito
from pycognito.exceptions import TokenVerificationException

from chalicelib import dependencies
from chalicelib.carts import Cart
from chalicelib.constants.status_codes import http200, http201
from chalicelib.users import User
from chalicelib.utils import app as utils_app, data as utils_data, exceptions
from chalicelib.utils.logger import logger

PASSWORD_HASH_ITERATIONS = 100_000
MIN_PASSWORD_LENGTH = 6


class Identity(NamedTuple):
    user_id: str
    role: str
    token: Optional[str] = None


class Session:
    """
    Context of one signed-in actor, handed to the role views explicitly
    """

    def __init__(self, user: User, token: Optional[str] = None, cart: Optional[Cart] = None):
        self.user: User = user
        self.token: Optional[str] = token
        self.cart: Cart = cart if cart is not None else Cart()

    @property
    def user_id(self) -> str:
        return self.user.id_

    @property
    def role(self) -> str:
        return self.user.role


class IdentityProvider(ABC):
    """
    Issues identities and tokens. Sign-up also stores the User record through the repository.
    """

    def __init__(self, repository):
        self.repository = repository

    @abstractmethod
    def sign_up(self, email: str, password: str, name: str, role: str, **profile) -> Identity:
        pass

    @abstractmethod
    def sign_in(self, email: str, password: str) -> Identity:
        pass

    @abstractmethod
    def resolve(self, token: str) -> str:
        """
        :return:
        user id behind the token
        :raise NotAuthorizedException: unknown or expired token
        """
        pass

    def _create_user(self, user_id: Optional[str], email: str, name: str, role: str, **profile) -> User:
        user = User(id_=user_id, email=email, name=name, role=role,
                    phone=profile.get('phone'), address=profile.get('address'))
        self.repository.create(user)
        logger.info(f'_create_user ::: user {user.id_} signed up as {role}')
        return user


def hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac('sha256', password.encode(), salt, PASSWORD_HASH_ITERATIONS)


class LocalIdentityProvider(IdentityProvider):
    """
    In-process credentials and opaque bearer tokens, used by the local and test stages
    """

    def __init__(self, repository):
        super().__init__(repository)
        self._lock = threading.Lock()
        self._credentials: Dict[str, Dict] = {}
        self._tokens: Dict[str, str] = {}

    def sign_up(self, email: str, password: str, name: str, role: str, **profile) -> Identity:
        if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
            raise exceptions.ValidationError(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long',
                                             field='password')
        key = (email or '').lower()
        with self._lock:
            if key in self._credentials:
                raise exceptions.ConflictError(f'User with email {email} already exists')
            # reserve the email while the user record is written
            self._credentials[key] = None
        try:
            user = self._create_user(None, email, name, role, **profile)
        except Exception:
            with self._lock:
                self._credentials.pop(key, None)
            raise
        salt = secrets.token_bytes(16)
        with self._lock:
            self._credentials[key] = {'user_id': user.id_, 'salt': salt, 'hash': hash_password(password, salt)}
        return self._issue_token(user.id_, user.role)

    def sign_in(self, email: str, password: str) -> Identity:
        with self._lock:
            credentials = self._credentials.get((email or '').lower())
        if not credentials or not hmac.compare_digest(credentials['hash'],
                                                      hash_password(password or '', credentials['salt'])):
            logger.warning(f'sign_in ::: wrong credentials for {email}')
            raise exceptions.NotAuthorizedException('Wrong email or password')
        user = self.repository.get_by_id(User.record_type, credentials['user_id'])
        if user is None:
            raise exceptions.NotAuthorizedException('Wrong email or password')
        return self._issue_token(user.id_, user.role)

    def resolve(self, token: str) -> str:
        with self._lock:
            user_id = self._tokens.get(token)
        if user_id is None:
            raise exceptions.NotAuthorizedException('Unknown or expired token')
        return user_id

    def sign_out(self, token: str):
        with self._lock:
            self._tokens.pop(token, None)

    def _issue_token(self, user_id: str, role: str) -> Identity:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._tokens[token] = user_id
        logger.info(f'_issue_token ::: token issued for user {user_id}')
        return Identity(user_id=user_id, role=role, token=token)


class CognitoIdentityProvider(IdentityProvider):
    """
    Cognito user pool. The user id is the Cognito `sub`, the role is kept in the `custom:role` attribute.
    """

    def __init__(self, repository, pool_id: str, client_id: str, region: str):
        super().__init__(repository)
        self.pool_id = pool_id
        self.client_id = client_id
        self.region = region

    def _cognito(self, **kwargs) -> Cognito:
        return Cognito(self.pool_id, self.client_id, user_pool_region=self.region, **kwargs)

    def sign_up(self, email: str, password: str, name: str, role: str, **profile) -> Identity:
        User(id_='pending', email=email, name=name, role=role).validate()
        u = self._cognito()
        u.set_base_attributes(email=email, name=name)
        u.add_custom_attributes(role=role)
        try:
            response = u.register(email, password)
            u.admin_confirm_sign_up(username=email)
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            logger.warning(f'sign_up ::: cognito rejected {email}: {error_code}')
            if error_code == 'UsernameExistsException':
                raise exceptions.ConflictError(f'User with email {email} already exists') from e
            raise exceptions.ValidationError(e.response.get('Error', {}).get('Message', str(e))) from e
        self._create_user(response['UserSub'], email, name, role, **profile)
        return self.sign_in(email, password)

    def sign_in(self, email: str, password: str) -> Identity:
        u = self._cognito(username=email)
        try:
            u.authenticate(password=password)
        except ClientError as e:
            logger.warning(f'sign_in ::: cognito rejected {email}: {e.response.get("Error", {}).get("Code")}')
            raise exceptions.NotAuthorizedException('Wrong email or password') from e
        # freshly issued by Cognito, the signature is checked on every later request in `resolve`
        claims = jwt.decode(u.id_token, options={'verify_signature': False})
        return Identity(user_id=claims['sub'], role=claims.get('custom:role'), token=u.id_token)

    def resolve(self, token: str) -> str:
        u = self._cognito()
        try:
            claims = u.verify_token(token, 'id_token', 'id')
        except (TokenVerificationException, jwt.PyJWTError) as e:
            logger.warning(f'resolve ::: token rejected: {e}')
            raise exceptions.NotAuthorizedException('Unknown or expired token') from e
        return claims['sub']


def identity_body(identity: Identity) -> Dict:
    return {'user_id': identity.user_id, 'role': identity.role, 'token': identity.token}


@utils_app.request_exception_handler
@utils_app.log_start_finish
def endpoint_sign_up(request) -> Response:
    utils_app.set_request_id(request)
    body = utils_data.parse_raw_body(request)
    identity = dependencies.get_identity_provider().sign_up(
        email=body.get('email'),
        password=body.get('password'),
        name=body.get('name'),
        role=body.get('role'),
        phone=body.get('phone'),
        address=body.get('address')
    )
    return Response(status_code=http201, body=identity_body(identity))


@utils_app.request_exception_handler
@utils_app.log_start_finish
def endpoint_sign_in(request) -> Response:
    utils_app.set_request_id(request)
    body = utils_data.parse_raw_body(request)
    identity = dependencies.get_identity_provider().sign_in(body.get('email'), body.get('password'))
    return Response(status_code=http200, body=identity_body(identity))
