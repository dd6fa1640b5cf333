"""Schema comparison using set operations.

Compares two name-keyed collections and classifies every name that differs.
Pure logic -- no I/O, no engine connections.

Usage:
    from kusto_sync.schema.comparator import compare_schemas

    result = compare_schemas(source_schema, target_schema)
    for difference in result.all_differences:
        print(difference.kind, difference.name, difference.difference)
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from kusto_sync.schema.models import (
    DatabaseSchema,
    Difference,
    SchemaDifference,
    SchemaDifferenceResult,
    SchemaKind,
)

V = TypeVar("V")


@dataclass
class DictDifference(Generic[V]):
    """The three disjoint buckets produced by ``diff_dicts()``.

    Attributes:
        modified: Names present on both sides with unequal values (source's value).
        only_in_source: Names missing from the target (source's value).
        only_in_target: Names missing from the source (target's value).
    """

    modified: dict[str, V] = field(default_factory=dict)
    only_in_source: dict[str, V] = field(default_factory=dict)
    only_in_target: dict[str, V] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        """True if the two inputs were equal."""
        return not (self.modified or self.only_in_source or self.only_in_target)

    def by_difference(self) -> dict[Difference, dict[str, V]]:
        """Map each ``Difference`` tag to its bucket."""
        return {
            Difference.MODIFIED: self.modified,
            Difference.ONLY_IN_SOURCE: self.only_in_source,
            Difference.ONLY_IN_TARGET: self.only_in_target,
        }


def diff_dicts(source: Mapping[str, V], target: Mapping[str, V]) -> DictDifference[V]:
    """Compare two name-keyed collections by value.

    Examples:
        >>> diff = diff_dicts({"a": 1, "b": 2}, {"b": 3, "c": 4})
        >>> diff.modified, diff.only_in_source, diff.only_in_target
        ({'b': 2}, {'a': 1}, {'c': 4})

        >>> diff_dicts({"a": 1}, {"a": 1}).is_empty
        True
    """
    source_names: set[str] = set(source.keys())
    target_names: set[str] = set(target.keys())

    common_names = source_names & target_names

    return DictDifference(
        modified={
            name: source[name]
            for name in sorted(common_names)
            if source[name] != target[name]
        },
        only_in_source={name: source[name] for name in sorted(source_names - target_names)},
        only_in_target={name: target[name] for name in sorted(target_names - source_names)},
    )


def _tag(kind: SchemaKind, diff: DictDifference) -> list[SchemaDifference]:
    return [
        SchemaDifference(
            kind=kind,
            name=name,
            difference=difference,
            schema_object=schema_object,
        )
        for difference, bucket in diff.by_difference().items()
        for name, schema_object in bucket.items()
    ]


def compare_schemas(source: DatabaseSchema, target: DatabaseSchema) -> SchemaDifferenceResult:
    """Classify every table and function that differs between two schemas.

    Args:
        source: Schema whose objects win for modified objects.
        target: Schema being brought in line with ``source``.

    Returns:
        ``SchemaDifferenceResult`` with table and function differences kept
        apart.

    Raises:
        ValueError: If either schema is ``None``.
    """
    if source is None or target is None:
        raise ValueError("Both source and target schemas are required")

    return SchemaDifferenceResult(
        table_differences=_tag(SchemaKind.TABLE, diff_dicts(source.tables, target.tables)),
        function_differences=_tag(
            SchemaKind.FUNCTION, diff_dicts(source.functions, target.functions)
        ),
    )
