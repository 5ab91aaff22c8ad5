from typing import Dict, Optional

from boto3.dynamodb.types import TypeDeserializer
from chalice.app import DynamoDBEvent

from chalicelib import dependencies
from chalicelib.constants.constants import KIND_USER, KIND_RESTAURANT, KIND_ORDER
from chalicelib.utils.logger import logger, log_exception

deserializer = TypeDeserializer()

# record_type values forwarded to subscriptions
gen_table_trigger_kinds = (KIND_ORDER, KIND_RESTAURANT, KIND_USER)


def deserialize_ddb_rec(record=None) -> Optional[Dict]:
    if not record:
        return None
    return {key: deserializer.deserialize(value) for key, value in record.items()}


def db_gen_table_stream_trigger(ddb_event: DynamoDBEvent):
    """
    Feeds writes made by other processes into the local subscriptions.
    A change may reach an observer twice when the write was also made here.
    """
    logger.debug(f'db_gen_table_stream_trigger ::: function triggered ddb_event={ddb_event.to_dict()}')
    repository = dependencies.get_repository()
    for record in ddb_event:
        try:
            normalized_new = deserialize_ddb_rec(record.new_image)
            normalized_old = deserialize_ddb_rec(record.old_image)
            kind = (normalized_new or {}).get('record_type') or (normalized_old or {}).get('record_type')
            if kind in gen_table_trigger_kinds:
                logger.info(f'db_gen_table_stream_trigger ::: {record.event_name} of {kind}, '
                            f'event_id={record.event_id}')
                repository.publish_change(kind, normalized_old, normalized_new)
        except Exception as e:
            log_exception(e, msg=f'db_gen_table_stream_trigger ::: failed on event_id={record.event_id}')
