import functools
import os
import time
from random import uniform
from typing import Dict, List, Optional

from botocore.exceptions import ClientError, EndpointConnectionError, ConnectionClosedError, ReadTimeoutError

from chalicelib.constants.keys_structure import created_at_index
from chalicelib.utils import exceptions
from chalicelib.utils.boto_clients import dynamodb_resource
from chalicelib.utils.logger import logger, log_exception

# For safe db operations
RETRY_EXCEPTIONS = ('ProvisionedThroughputExceededException', 'ThrottlingException', 'RequestLimitExceeded',
                    'InternalServerError', 'ServiceUnavailable')
CONNECTION_EXCEPTIONS = (EndpointConnectionError, ConnectionClosedError, ReadTimeoutError)
CONDITIONAL_CHECK_FAILED = 'ConditionalCheckFailedException'
need_return_capacity = ('put_item', 'get_item', 'update_item', 'query')

_DB = None


def db_max_retries() -> int:
    return int(os.environ.get('DB_MAX_RETRIES', 3))


def backoff_delay(retry: int) -> float:
    return min(0.05 * 2 ** retry, 1.0) * uniform(0.5, 1.0)


def exp_db_backoff(func):
    """
        should be used for any atomic
        get/put/update/query item in the code
        Throttling and unavailable store are retried DB_MAX_RETRIES times,
        conditional check failures are passed to the caller untouched,
        every other client error becomes PersistenceError
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger.debug(f'{func.__name__}:: args={args}, kwargs={kwargs}')
        max_retries = db_max_retries()
        if func.__name__ not in need_return_capacity:
            raise RuntimeError("This decorator only for DynamoDB methods")
        kwargs.update({'ReturnConsumedCapacity': 'TOTAL'})

        for retries in range(max_retries + 1):
            try:
                result = func(*args, **kwargs)
                logger.info(f'{func.__name__}:: SUCCESS')
                return result

            except ClientError as e:
                error_code = e.response.get('Error', {}).get('Code')
                if error_code == CONDITIONAL_CHECK_FAILED:
                    raise
                if error_code not in RETRY_EXCEPTIONS:
                    log_exception(e, msg=f'Got exception while trying to {func.__name__}: ')
                    raise exceptions.PersistenceError(f'{func.__name__} failed with {error_code}') from e
                logger.warning(f'{func.__name__}:: {error_code}, retry {retries + 1} of {max_retries}')

            except CONNECTION_EXCEPTIONS as e:
                logger.warning(f'{func.__name__}:: {e.__class__.__name__}, retry {retries + 1} of {max_retries}')

            if retries < max_retries:
                time.sleep(backoff_delay(retries))

        raise exceptions.NumberOfRetriesExceeded(
            f"MaxNumber={max_retries} of DB retries has exceeded"
        )

    return wrapper


def wrap_table(table):
    table.put_item = exp_db_backoff(table.put_item)
    table.get_item = exp_db_backoff(table.get_item)
    table.update_item = exp_db_backoff(table.update_item)
    table.query = exp_db_backoff(table.query)
    return table


def get_table(table_name: str):
    return wrap_table(dynamodb_resource().Table(table_name))


def get_gen_table():
    global _DB
    if _DB is None:
        _DB = get_table(os.environ.get('GEN_TABLE_NAME'))
    return _DB


def reset_gen_table():
    global _DB
    _DB = None


def put_db_record(item: dict, condition_expression=None, table=get_gen_table):
    """
    :raise ConflictError: condition_expression did not hold
    """
    kwargs = {'Item': item}
    if condition_expression is not None:
        kwargs['ConditionExpression'] = condition_expression
    try:
        table().put_item(**kwargs)
    except ClientError as e:
        if e.response.get('Error', {}).get('Code') == CONDITIONAL_CHECK_FAILED:
            logger.warning(f"put_db_record ::: record partkey={item['partkey']} sortkey={item['sortkey']} "
                           f"rejected by condition")
            raise exceptions.ConflictError('Record already exists') from e
        raise


def generate_update_expression(update_body: dict):
    """
    Generate expressions to update and delete attributes.
    None values are removed from the record, anything else is set.
    Attribute names go through placeholders since `status` is a DynamoDB reserved word.
    """
    expr_attr_names = {}
    expr_attr_values = {}
    set_parts = []
    remove_parts = []
    for field, field_value in update_body.items():
        expr_attr_names[f'#f_{field}'] = field
        if field_value is None:
            remove_parts.append(f'#f_{field}')
        else:
            expr_attr_values[f':f_{field}'] = field_value
            set_parts.append(f'#f_{field}=:f_{field}')

    expression = []
    if set_parts:
        expression.append('SET ' + ', '.join(set_parts))
    if remove_parts:
        expression.append('REMOVE ' + ', '.join(remove_parts))
    return ' '.join(expression), expr_attr_names, expr_attr_values


def update_db_record(key: dict, update_body: dict, condition_expression, table=get_gen_table) -> Dict:
    """
    Single conditional UpdateItem.
    :return:
    the record as it was before the update
    :raise NotFoundError: no record under the key
    :raise ConflictError: the record exists but condition_expression did not hold
    """
    update_expr, expr_attr_names, expr_attr_values = generate_update_expression(update_body)
    kwargs = {
        'Key': key,
        'UpdateExpression': update_expr,
        'ExpressionAttributeNames': expr_attr_names,
        'ConditionExpression': condition_expression,
        'ReturnValues': 'ALL_OLD',
        'ReturnValuesOnConditionCheckFailure': 'ALL_OLD'
    }
    if expr_attr_values:
        kwargs['ExpressionAttributeValues'] = expr_attr_values
    try:
        response = table().update_item(**kwargs)
    except ClientError as e:
        if e.response.get('Error', {}).get('Code') != CONDITIONAL_CHECK_FAILED:
            raise
        if e.response.get('Item'):
            logger.warning(f"update_db_record ::: record {key} changed concurrently, condition failed")
            raise exceptions.ConflictError('Record was changed by someone else') from e
        logger.warning(f"update_db_record ::: record {key} not found")
        raise exceptions.NotFoundError(f"record partkey={key['partkey']} sortkey={key['sortkey']} not found") \
            from e
    return response['Attributes']


def get_db_item(partkey, sortkey, table=get_gen_table) -> Optional[Dict]:
    result = table().get_item(
        Key={
            'partkey': partkey,
            'sortkey': sortkey
        },
        ConsistentRead=True
    )

    if 'Item' in result:
        return result['Item']
    logger.info(f"get_db_item ::: record partkey={partkey} sortkey={sortkey} not found")
    return None


def query_items_paginated(
        key_condition_expression,
        filter_expression=None,
        table=get_gen_table,
        index_name=None,
        scan_index_forward=True,
        limit=None,
        start_key=None
):
    kwargs = {'KeyConditionExpression': key_condition_expression, 'ScanIndexForward': scan_index_forward}
    if filter_expression is not None:
        kwargs.update({'FilterExpression': filter_expression})

    if limit:
        kwargs.update({'Limit': int(limit)})

    if index_name:
        kwargs.update({'IndexName': index_name})

    if start_key:
        kwargs.update({'ExclusiveStartKey': start_key})

    resp = table().query(**kwargs)
    return resp['Items'], resp.get('LastEvaluatedKey')


def query_items_paged(key_condition_expression, filter_expression=None, table=get_gen_table,
                      index_name=created_at_index, scan_index_forward=True) -> List[Dict]:
    """ This method shall be used whenever you think the query will
        return more than 1mb of data at once"""
    all_items = []
    last_evaluated_key = None
    while True:
        items, last_evaluated_key = query_items_paginated(
            key_condition_expression,
            filter_expression=filter_expression,
            table=table,
            index_name=index_name,
            scan_index_forward=scan_index_forward,
            start_key=last_evaluated_key
        )
        all_items.extend(items)
        if last_evaluated_key is None:
            return all_items
