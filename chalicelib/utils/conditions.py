"""
Predicate terms understood by every repository adapter.

A predicate is a list of terms, all of which must hold (logical AND).
The in-memory adapter evaluates them with `matches`, the DynamoDB adapter
translates them into boto3 condition objects with `to_dynamodb_condition`.
"""
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from boto3.dynamodb.conditions import Attr

OP_EQ = 'eq'
OP_NE = 'ne'
OP_IN = 'in'
OP_UNSET = 'unset'


class Term(NamedTuple):
    field: str
    op: str
    value: Any = None


def eq(field: str, value) -> Term:
    return Term(field, OP_EQ, value)


def ne(field: str, value) -> Term:
    return Term(field, OP_NE, value)


def is_in(field: str, values: Iterable) -> Term:
    return Term(field, OP_IN, tuple(values))


def is_unset(field: str) -> Term:
    """ Field is absent or None """
    return Term(field, OP_UNSET)


def term_matches(record: Dict, term: Term) -> bool:
    value = record.get(term.field)
    if term.op == OP_EQ:
        return value == term.value
    if term.op == OP_NE:
        return value != term.value
    if term.op == OP_IN:
        return value in term.value
    if term.op == OP_UNSET:
        return value is None
    raise ValueError(f'Unknown predicate operator {term.op}')


def matches(record: Optional[Dict], predicate: Optional[List[Term]]) -> bool:
    if record is None:
        return False
    return all(term_matches(record, term) for term in predicate or [])


def fields_of(predicate: Optional[List[Term]]) -> List[str]:
    return [term.field for term in predicate or []]


def to_dynamodb_condition(predicate: Optional[List[Term]]):
    condition = None
    for term in predicate or []:
        attr = Attr(term.field)
        if term.op == OP_EQ:
            expression = attr.eq(term.value)
        elif term.op == OP_NE:
            # absent attributes count as "not equal", same as the in-memory evaluation
            expression = attr.ne(term.value) | attr.not_exists()
        elif term.op == OP_IN:
            expression = attr.is_in(list(term.value))
        elif term.op == OP_UNSET:
            expression = attr.not_exists() | attr.eq(None)
        else:
            raise ValueError(f'Unknown predicate operator {term.op}')
        condition = expression if condition is None else condition & expression
    return condition
