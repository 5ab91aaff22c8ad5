"""
Persistence, query and subscription contract over users, restaurants and orders.

Two adapters share the same behaviour:
    InMemoryRepository - one process, a lock around a dict of records
    DynamoDBRepository - single table, conditional writes for compare-and-set
"""
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple
from uuid import uuid4

from boto3.dynamodb.conditions import Key, Attr

from chalicelib.base_class_entity import EntityBase, now_iso
from chalicelib.constants.constants import KIND_USER, KIND_RESTAURANT, KIND_ORDER
from chalicelib.orders import Order
from chalicelib.restaurants import Restaurant
from chalicelib.users import User
from chalicelib.utils import db as utils_db, exceptions
from chalicelib.utils.conditions import Term, matches, fields_of, to_dynamodb_condition
from chalicelib.utils.data import copy_record
from chalicelib.utils.logger import logger
from chalicelib.utils.subscriptions import Subscription, SubscriptionHub

ENTITY_CLASSES = {
    KIND_USER: User,
    KIND_RESTAURANT: Restaurant,
    KIND_ORDER: Order
}

INDEXED_FIELDS = {
    KIND_ORDER: ('customer_id', 'restaurant_id', 'driver_id', 'status'),
    KIND_RESTAURANT: ('owner_id', 'is_open'),
    KIND_USER: ('role', 'email')
}

# Kinds whose records carry `updated_at`
TIMESTAMPED_KINDS = (KIND_ORDER,)


def entity_class(kind: str):
    try:
        return ENTITY_CLASSES[kind]
    except KeyError:
        raise ValueError(f'Unknown record kind {kind}') from None


def check_predicate(kind: str, predicate: Optional[List[Term]]):
    not_indexed = [field for field in fields_of(predicate) if field not in INDEXED_FIELDS[kind]]
    if not_indexed:
        raise ValueError(f'Fields {not_indexed} are not indexed for {kind}')


def merge_update(record: Dict, update_dict: Dict) -> Dict:
    merged = copy_record(record)
    for key, value in update_dict.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = copy_record(value)
    return merged


def sort_records(records: List[Dict], order_by: str, descending: bool) -> List[Dict]:
    return sorted(records, key=lambda record: (record.get(order_by) is not None, record.get(order_by)),
                  reverse=descending)


class Repository(ABC):

    def __init__(self, hub: SubscriptionHub = None):
        self.hub = hub or SubscriptionHub()

    def create(self, entity: EntityBase) -> str:
        """
        Validates and persists a new entity, a missing id is generated.
        :return:
        id of the created record
        :raise ValidationError: entity is not valid, nothing is written
        :raise ConflictError: a record with the same id exists
        """
        kind = entity.record_type
        entity_class(kind)
        if entity.id_ is None:
            entity.id_ = str(uuid4())
        entity.created_at = now_iso()
        if kind in TIMESTAMPED_KINDS:
            entity.updated_at = entity.created_at
        entity.validate()
        record = entity.to_db_record()
        self._put_new(kind, entity.id_, record)
        logger.info(f'create ::: {kind} {entity.id_} successfully created')
        self.publish_change(kind, None, record)
        return entity.id_

    def get_by_id(self, kind: str, id_: str) -> Optional[EntityBase]:
        """ None when there is no such record """
        record = self._get(kind, id_)
        if record is None:
            return None
        return entity_class(kind).from_record(record)

    def query(self, kind: str, predicate: Optional[List[Term]] = None, order_by: str = 'created_at',
              descending: bool = False) -> List[EntityBase]:
        check_predicate(kind, predicate)
        records = sort_records(self._query(kind, predicate, descending), order_by, descending)
        return [entity_class(kind).from_record(record) for record in records]

    def update(self, kind: str, id_: str, fields: Dict, expected: Optional[List[Term]] = None) -> EntityBase:
        """
        Merges `fields` into the stored record in one conditional write.
        None values remove the field.
        :param expected: predicate the stored record must satisfy at write time
        :return:
        the updated entity
        :raise NotFoundError: no record with this id
        :raise ConflictError: `expected` did not hold
        """
        cls = entity_class(kind)
        update_dict = cls.get_validated_update_dict(fields)
        if kind in TIMESTAMPED_KINDS:
            update_dict['updated_at'] = now_iso()
        if not update_dict:
            return self._unchanged(kind, id_, list(expected or []))
        old_record, new_record = self._update(kind, id_, update_dict, list(expected or []))
        logger.info(f'update ::: {kind} {id_} updated fields={sorted(update_dict)}')
        self.publish_change(kind, old_record, new_record)
        return cls.from_record(new_record)

    def _unchanged(self, kind: str, id_: str, expected: List[Term]) -> EntityBase:
        record = self._get(kind, id_)
        if record is None:
            logger.warning(f'update ::: {kind} {id_} not found')
            raise exceptions.NotFoundError(f'{kind} {id_} not found')
        if not matches(record, expected):
            logger.warning(f'update ::: {kind} {id_} does not satisfy {expected}')
            raise exceptions.ConflictError(f'{kind} {id_} was changed by someone else')
        logger.info(f'update ::: {kind} {id_} nothing to update')
        return entity_class(kind).from_record(record)

    def subscribe(self, kind: str, predicate: Optional[List[Term]], callback: Callable[[List[EntityBase]], None],
                  order_by: str = 'created_at', descending: bool = False) -> Subscription:
        """
        `callback` gets the current matching set right away and again after every change
        to a record matching `predicate` before or after the change.
        """
        check_predicate(kind, predicate)
        return self.hub.subscribe(kind, predicate, callback,
                                  load_snapshot=lambda: self.query(kind, predicate, order_by, descending))

    def publish_change(self, kind: str, old_record: Optional[Dict], new_record: Optional[Dict]):
        self.hub.publish(kind, old_record, new_record)

    @abstractmethod
    def _put_new(self, kind: str, id_: str, record: Dict):
        pass

    @abstractmethod
    def _get(self, kind: str, id_: str) -> Optional[Dict]:
        pass

    @abstractmethod
    def _query(self, kind: str, predicate: Optional[List[Term]], descending: bool) -> List[Dict]:
        pass

    @abstractmethod
    def _update(self, kind: str, id_: str, update_dict: Dict, expected: List[Term]) -> Tuple[Dict, Dict]:
        """ :return: (old record, new record) """
        pass


class InMemoryRepository(Repository):

    def __init__(self, hub: SubscriptionHub = None):
        super().__init__(hub)
        self._lock = threading.RLock()
        self._records: Dict[str, Dict[str, Dict]] = {kind: {} for kind in ENTITY_CLASSES}

    def _put_new(self, kind: str, id_: str, record: Dict):
        with self._lock:
            if id_ in self._records[kind]:
                logger.warning(f'_put_new ::: {kind} {id_} already exists')
                raise exceptions.ConflictError(f'{kind} {id_} already exists')
            self._records[kind][id_] = copy_record(record)

    def _get(self, kind: str, id_: str) -> Optional[Dict]:
        with self._lock:
            return copy_record(self._records[kind].get(id_))

    def _query(self, kind: str, predicate: Optional[List[Term]], descending: bool) -> List[Dict]:
        with self._lock:
            return [copy_record(record) for record in self._records[kind].values() if matches(record, predicate)]

    def _update(self, kind: str, id_: str, update_dict: Dict, expected: List[Term]) -> Tuple[Dict, Dict]:
        with self._lock:
            record = self._records[kind].get(id_)
            if record is None:
                logger.warning(f'_update ::: {kind} {id_} not found')
                raise exceptions.NotFoundError(f'{kind} {id_} not found')
            if not matches(record, expected):
                logger.warning(f'_update ::: {kind} {id_} does not satisfy {expected}')
                raise exceptions.ConflictError(f'{kind} {id_} was changed by someone else')
            new_record = merge_update(record, update_dict)
            self._records[kind][id_] = new_record
            return copy_record(record), copy_record(new_record)


class DynamoDBRepository(Repository):
    """
    All kinds live in one table, partitioned by kind and listed through the created_at index.
    Index reads are eventually consistent, reads by id are strongly consistent.
    """

    def __init__(self, table=None, hub: SubscriptionHub = None):
        super().__init__(hub)
        self.table = (lambda: table) if table is not None else utils_db.get_gen_table

    def _put_new(self, kind: str, id_: str, record: Dict):
        utils_db.put_db_record(record, condition_expression=Attr('partkey').not_exists(), table=self.table)

    def _get(self, kind: str, id_: str) -> Optional[Dict]:
        key = entity_class(kind).key_for(id_)
        return utils_db.get_db_item(key['partkey'], key['sortkey'], table=self.table)

    def _query(self, kind: str, predicate: Optional[List[Term]], descending: bool) -> List[Dict]:
        return utils_db.query_items_paged(
            Key('partkey').eq(entity_class(kind).pk),
            filter_expression=to_dynamodb_condition(predicate),
            table=self.table,
            scan_index_forward=not descending
        )

    def _update(self, kind: str, id_: str, update_dict: Dict, expected: List[Term]) -> Tuple[Dict, Dict]:
        condition = Attr('partkey').exists()
        expected_condition = to_dynamodb_condition(expected)
        if expected_condition is not None:
            condition = condition & expected_condition
        old_record = utils_db.update_db_record(entity_class(kind).key_for(id_), update_dict, condition,
                                               table=self.table)
        return old_record, merge_update(old_record, update_dict)
