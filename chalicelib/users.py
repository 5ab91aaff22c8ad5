from typing import Dict

from chalice import Response

from chalicelib import dependencies
from chalicelib.base_class_entity import EntityBase, non_empty_str, one_of
from chalicelib.constants import keys_structure
from chalicelib.constants.constants import KIND_USER, ROLES
from chalicelib.constants.status_codes import http200
from chalicelib.utils import auth as utils_auth, app as utils_app, data as utils_data
from chalicelib.utils.logger import logger


def valid_email(x) -> bool:
    return non_empty_str(x) and '@' in x


class User(EntityBase):
    pk = keys_structure.users_pk
    sk = keys_structure.users_sk
    sk_field = 'user_id'
    record_type = KIND_USER

    required_immutable_fields_validation = {
        'id_': non_empty_str,
        'email': valid_email,
        'role': one_of(ROLES)
    }

    required_mutable_fields_validation = {
        'name': non_empty_str,
        'is_online': lambda x: isinstance(x, bool)
    }

    optional_fields_validation = {
        'phone': lambda x: isinstance(x, str),
        'address': lambda x: isinstance(x, str),
        'restaurant_id': lambda x: isinstance(x, str)
    }

    # Fields the owner edits through the profile endpoint,
    # `is_online` and `restaurant_id` have their own commands
    profile_fields = ('name', 'phone', 'address')

    def __init__(self, id_=None, **kwargs):
        EntityBase.__init__(self, id_, **kwargs)

        self.email: str = kwargs.get('email')
        self.name: str = kwargs.get('name')
        self.role: str = kwargs.get('role')
        self.phone: str = kwargs.get('phone')
        self.address: str = kwargs.get('address')
        self.is_online: bool = kwargs.get('is_online', False)
        self.restaurant_id: str = kwargs.get('restaurant_id')

    def _to_dict(self) -> Dict:
        return {
            'id_': self.id_,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'phone': self.phone,
            'address': self.address,
            'is_online': self.is_online,
            'restaurant_id': self.restaurant_id,
            'created_at': self.created_at
        }


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_get_user(request) -> Response:
    return Response(status_code=http200, body=request.session.user.to_ui())


@utils_app.request_exception_handler
@utils_app.log_start_finish
@utils_auth.authenticate
def endpoint_update_user(request) -> Response:
    request_body = utils_data.parse_raw_body(request)
    update_dict = {key: value for key, value in request_body.items() if key in User.profile_fields}
    dropped = set(request_body) - set(update_dict)
    if dropped:
        logger.warning(f'endpoint_update_user ::: ignoring non-profile fields {sorted(dropped)}')
    session = request.session
    user: User = dependencies.get_repository().update(KIND_USER, session.user.id_, update_dict)
    session.user = user
    return Response(status_code=http200, body={'message': 'User was successfully updated', 'id': user.id_})
