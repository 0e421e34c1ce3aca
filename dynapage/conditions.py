"""
Filter operators for Dynapage.

A filter entry is ``(field, op, value)``. This module gives every supported
operator two meanings:

- a Python predicate, used by MemoryCollection to evaluate records in process;
- a boto3 condition, used by DynamoCollection to build a FilterExpression.

DynamoDB rejects key attributes in a FilterExpression, so a filter on the
sort key becomes part of the KeyConditionExpression instead, which only
supports the comparison operators.

Expression strings are never assembled by hand. boto3's
ConditionExpressionBuilder generates them, including placeholders for
reserved attribute names such as "status" or "name".
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

from boto3.dynamodb.conditions import And as Boto3And
from boto3.dynamodb.conditions import Attr as Boto3Attr
from boto3.dynamodb.conditions import ConditionBase as Boto3ConditionBase
from boto3.dynamodb.conditions import ConditionExpressionBuilder
from boto3.dynamodb.conditions import Key as Boto3Key
from boto3.dynamodb.conditions import Not as Boto3Not
from boto3.dynamodb.conditions import Or as Boto3Or

from .exceptions import QueryNotSupportedError

if TYPE_CHECKING:
    from .serializer import DynamoSerializer

MISSING = object()


def _contains(actual: Any, value: Any) -> bool:
    return isinstance(actual, (list, tuple, set, frozenset)) and value in actual


def _contains_any(actual: Any, values: Any) -> bool:
    return isinstance(actual, (list, tuple, set, frozenset)) and any(v in actual for v in values)


def _compare(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def predicate(actual: Any, value: Any) -> bool:
        try:
            return op(actual, value)
        except TypeError:
            # Mismatched types never match
            return False

    return predicate


_PREDICATES: dict[str, Callable[[Any, Any], bool]] = {
    "<": _compare(lambda a, v: a < v),
    "<=": _compare(lambda a, v: a <= v),
    "==": lambda a, v: a == v,
    "!=": lambda a, v: a != v,
    ">=": _compare(lambda a, v: a >= v),
    ">": _compare(lambda a, v: a > v),
    "array-contains": _contains,
    "array-contains-any": _contains_any,
    "in": _compare(lambda a, v: a in v),
    "not-in": _compare(lambda a, v: a not in v),
}

OPERATORS = frozenset(_PREDICATES)


def matches(record: Mapping[str, Any], field: str, op: str, value: Any) -> bool:
    """
    Evaluates one filter entry against a record held in memory.

    A record without the field never matches, whatever the operator.
    """
    try:
        predicate = _PREDICATES[op]
    except KeyError:
        raise QueryNotSupportedError(f"Unsupported filter operator '{op}'", field=field) from None

    actual = record.get(field, MISSING)
    if actual is MISSING:
        return False
    return predicate(actual, value)


def to_boto3_condition(field: str, op: str, value: Any) -> Boto3ConditionBase:
    """
    Translates one filter entry into a boto3 condition.

    Usage:
        to_boto3_condition("status", "==", "published")
        to_boto3_condition("tags", "array-contains-any", ["python", "aws"])
    """
    attr = Boto3Attr(field)
    if op == "<":
        return attr.lt(value)
    if op == "<=":
        return attr.lte(value)
    if op == "==":
        return attr.eq(value)
    if op == "!=":
        return attr.ne(value)
    if op == ">=":
        return attr.gte(value)
    if op == ">":
        return attr.gt(value)
    if op == "array-contains":
        return attr.contains(value)
    if op in ("array-contains-any", "in", "not-in"):
        values = list(value)
        if not values:
            raise QueryNotSupportedError(f"Operator '{op}' needs at least one value", field=field)
        if op == "in":
            return attr.is_in(values)
        if op == "not-in":
            return Boto3Not(attr.is_in(values))
        condition: Boto3ConditionBase = attr.contains(values[0])
        for extra in values[1:]:
            condition = Boto3Or(condition, attr.contains(extra))
        return condition
    raise QueryNotSupportedError(f"Unsupported filter operator '{op}'", field=field)


KEY_OPERATORS = frozenset({"<", "<=", "==", ">=", ">"})


def to_boto3_key_condition(field: str, op: str, value: Any) -> Boto3ConditionBase:
    """
    Translates a filter entry on the sort key into a key condition.

    Usage:
        to_boto3_key_condition("sent_at", ">=", "2024-01-03")
    """
    if op not in KEY_OPERATORS:
        raise QueryNotSupportedError(
            f"Operator '{op}' cannot filter the sort key; use one of {sorted(KEY_OPERATORS)}",
            field=field,
        )
    key = Boto3Key(field)
    if op == "<":
        return key.lt(value)
    if op == "<=":
        return key.lte(value)
    if op == "==":
        return key.eq(value)
    if op == ">=":
        return key.gte(value)
    return key.gt(value)


def combine_conditions(conditions: list[Boto3ConditionBase]) -> Boto3ConditionBase | None:
    """ANDs the conditions together in order; None when there are none."""
    combined: Boto3ConditionBase | None = None
    for condition in conditions:
        combined = condition if combined is None else Boto3And(combined, condition)
    return combined


def compile_query_conditions(
    key_condition: Boto3ConditionBase,
    filter_condition: Boto3ConditionBase | None,
    serializer: DynamoSerializer,
) -> dict[str, Any]:
    """
    Compiles key and filter conditions into low-level Query parameters.

    Both expressions are built with the same ConditionExpressionBuilder so
    their placeholders (#n0, :v0, ...) never collide.

    Returns:
        Dict with KeyConditionExpression, optionally FilterExpression, and the
        merged ExpressionAttributeNames / ExpressionAttributeValues.
    """
    builder = ConditionExpressionBuilder()
    names: dict[str, str] = {}
    values: dict[str, Any] = {}

    key_expr = builder.build_expression(key_condition, is_key_condition=True)
    names.update(key_expr.attribute_name_placeholders)
    values.update(key_expr.attribute_value_placeholders)
    result: dict[str, Any] = {"KeyConditionExpression": key_expr.condition_expression}

    if filter_condition is not None:
        filter_expr = builder.build_expression(filter_condition, is_key_condition=False)
        names.update(filter_expr.attribute_name_placeholders)
        values.update(filter_expr.attribute_value_placeholders)
        result["FilterExpression"] = filter_expr.condition_expression

    if names:
        result["ExpressionAttributeNames"] = names
    if values:
        # Values go to the low-level client, so they need DynamoDB JSON ({"S": ...})
        result["ExpressionAttributeValues"] = {
            placeholder: serializer.to_dynamo_value(value) for placeholder, value in values.items()
        }
    return result
