"""Translation of filter trees and sort fields from logical paths to source attributes."""
from core.attribute_mapper import AttributeMapper
from schemas.person_query import ConditionNode, LogicalNode, SortField
from services.exceptions import UnmappedFieldError


def translate_filter(
    node: ConditionNode | LogicalNode,
    mapper: AttributeMapper,
) -> ConditionNode | LogicalNode:
    """
    Return a copy of the filter tree with every condition path mapped to its source attribute.

    The tree shape, operators and values are left untouched; only leaf paths
    change. Translation happens once, right before the tree is handed to the
    directory gateway.

    Raises:
        UnmappedFieldError: If a condition references a path with no mapping.
    """
    if isinstance(node, ConditionNode):
        source_attribute = mapper.resolve(node.path)
        if source_attribute is None:
            raise UnmappedFieldError(node.path, usage="filter")
        return node.model_copy(update={"path": source_attribute})

    return node.model_copy(
        update={"children": [translate_filter(child, mapper) for child in node.children]},
    )


def translate_sort(fields: list[SortField], mapper: AttributeMapper) -> list[SortField]:
    """
    Map sort fields to source attributes, keeping their order and direction.

    Raises:
        UnmappedFieldError: If a sort field references a path with no mapping.
    """
    translated = []
    for field in fields:
        source_attribute = mapper.resolve(field.path)
        if source_attribute is None:
            raise UnmappedFieldError(field.path, usage="sort")
        translated.append(field.model_copy(update={"path": source_attribute}))
    return translated
