import json
from copy import deepcopy
from decimal import Decimal, InvalidOperation

from chalicelib.utils.exceptions import ValidationError


def rename_key(item: dict, orig_key: str, new_key: str):
    if orig_key not in item:
        return
    value = item.pop(orig_key)
    item.setdefault(new_key, value)


def substitute_keys(dict_to_process: dict, base_keys: dict, opt_dict=None):
    """ Rename keys in place following `base_keys`; a falsy target drops the key """
    for key, val in {**base_keys, **(opt_dict or {})}.items():
        if val:
            rename_key(dict_to_process, key, val)
        else:
            dict_to_process.pop(key, None)


def parse_raw_body(chalice_request) -> dict:
    """
    JSON object from the request body with nulls dropped and floats parsed as Decimal.
    An empty body is an empty dict.
    """
    raw_body = chalice_request.raw_body
    if not raw_body:
        return {}
    try:
        body = json.loads(raw_body, parse_float=Decimal)
    except ValueError:
        raise ValidationError('Request body is not valid JSON')
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object')
    return drop_nulls(body)


def drop_nulls(value):
    if isinstance(value, dict):
        return {key: drop_nulls(sub_value) for key, sub_value in value.items() if sub_value is not None}
    if isinstance(value, list):
        return [drop_nulls(sub_value) for sub_value in value if sub_value is not None]
    return value


def to_decimal(value):
    """
    Exact Decimal from int, float, str or Decimal, never rounded.
    bool, None and unparsable values come back untouched so the validators reject them.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, str, Decimal)):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return value


def copy_record(record):
    return None if record is None else deepcopy(record)
