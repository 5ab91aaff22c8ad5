from datetime import datetime, timezone
from decimal import Decimal
from typing import Tuple, Dict, List, Optional

from chalicelib.constants.substitute_keys import from_db
from chalicelib.utils import exceptions
from chalicelib.utils.data import substitute_keys, copy_record
from chalicelib.utils.logger import logger


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='microseconds')


def non_empty_str(x) -> bool:
    return isinstance(x, str) and x.strip() != ''


def optional_str(x) -> bool:
    return x is None or isinstance(x, str)


def non_negative_decimal(x) -> bool:
    return isinstance(x, Decimal) and x.is_finite() and x >= 0


def money(x) -> bool:
    """ Non-negative amount in whole cents, 1.005 is rejected rather than rounded """
    return non_negative_decimal(x) and x.normalize().as_tuple().exponent >= -2


def one_of(values):
    return lambda x: x in values


class EntityBase:
    pk = None
    sk = None
    sk_field = None
    record_type = ''

    required_immutable_fields_validation = {}
    required_mutable_fields_validation = {}
    optional_fields_validation = {}

    def __init__(self, id_=None, **kwargs):
        self.id_: Optional[str] = id_
        self.created_at: Optional[str] = kwargs.get('created_at')

    def _get_pk_sk(self) -> Tuple[str, str]:
        """
        :return:
        partkey, sortkey of db item for child
        """
        key = self.key_for(self.id_)
        return key['partkey'], key['sortkey']

    @classmethod
    def key_for(cls, id_) -> Dict:
        return {'partkey': cls.pk, 'sortkey': cls.sk.format(**{cls.sk_field: id_})}

    def _to_dict(self) -> Dict:
        """
        Should be re-implemented in each child class
        :return:
        dict of item's attributes
        """
        return {
            'id_': self.id_,
            'created_at': self.created_at
        }

    def to_dict(self) -> Dict:
        return self._to_dict()

    @classmethod
    def from_record(cls, record: Dict):
        record = copy_record(record)
        for key in ('partkey', 'sortkey', 'record_type'):
            record.pop(key, None)
        return cls(**record)

    def to_db_record(self) -> Dict:
        pk, sk = self._get_pk_sk()
        return {
            'partkey': pk,
            'sortkey': sk,
            'record_type': self.record_type,
            **{key: value for key, value in self._to_dict().items() if value is not None}
        }

    @classmethod
    def raise_validation_error(cls, key):
        message = f'Validation error occurred while validating the field={key}'
        logger.error(f"raise_validation_error ::: {cls.record_type} {message}")
        raise exceptions.ValidationError(message, field=key)

    def _validate_mandatory_fields(self, record: Dict):
        """
        Validates mandatory fields if all fields have correct type to put to db
        Raise ValidationError in case if a field is not valid
        """
        for key, validator_func in {
            **self.required_immutable_fields_validation,
            **self.required_mutable_fields_validation
        }.items():
            if validator_func(record.get(key)) is False:
                self.raise_validation_error(key)

    def _validate_optional_fields(self, record: Dict):
        """
        Validates optional fields, only the ones which are set
        """
        for key, validator_func in self.optional_fields_validation.items():
            if record.get(key) is not None and validator_func(record.get(key)) is False:
                self.raise_validation_error(key)

    def _validate_entity(self):
        """
        Cross-field rules, re-implemented in child classes when needed
        """
        pass

    def validate(self):
        record = self._to_dict()
        self._validate_mandatory_fields(record)
        self._validate_optional_fields(record)
        self._validate_entity()
        return self

    @classmethod
    def is_valid_record(cls, record) -> bool:
        if not isinstance(record, dict):
            return False
        for key, validator_func in {
            **cls.required_immutable_fields_validation,
            **cls.required_mutable_fields_validation
        }.items():
            if validator_func(record.get(key)) is False:
                return False
        return all(
            validator_func(record[key]) is not False
            for key, validator_func in cls.optional_fields_validation.items() if record.get(key) is not None
        )

    @classmethod
    def _update_fields_whitelist(cls) -> List:
        return [*cls.required_mutable_fields_validation.keys(), *cls.optional_fields_validation.keys()]

    @classmethod
    def get_validated_update_dict(cls, update_dict: Dict) -> Dict:
        """
        Validates fields for update
        Fields which are immutable or unknown are dropped with a warning,
        invalid values of mutable fields raise ValidationError
        :return:
        Clean dict for update
        """
        clean_dict = {}
        whitelist = cls._update_fields_whitelist()
        for key, value in update_dict.items():
            if key not in whitelist:
                logger.warning(f'get_validated_update_dict ::: {cls.record_type} {key=} is not updatable, '
                               f'removing from update dict..')
                continue
            if key in cls.optional_fields_validation:
                if value is not None and cls.optional_fields_validation[key](value) is False:
                    cls.raise_validation_error(key)
            elif cls.required_mutable_fields_validation[key](value) is False:
                cls.raise_validation_error(key)
            clean_dict[key] = value
        return clean_dict

    def _to_ui(self) -> Dict:
        item = self._to_dict()
        substitute_keys(dict_to_process=item, base_keys=from_db)
        return item

    def to_ui(self) -> Dict:
        return self._to_ui()

    def __eq__(self, other):
        return type(self) is type(other) and self._to_dict() == other._to_dict()

    def __repr__(self):
        return f'{self.__class__.__name__}(id_={self.id_!r})'
