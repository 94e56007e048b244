"""Expansion of a free-text name search into filter conditions."""
from schemas.person_query import FilterOperator, LogicalNode, and_, condition, or_


def expand_search(
    search: str | None,
    given_name_path: str,
    family_name_path: str,
) -> LogicalNode | None:
    """
    Turn a search phrase into a filter requiring every term to match a name field.

    Each whitespace separated term becomes
    OR(i_contains(given_name_path, term), i_contains(family_name_path, term)),
    and the per-term subtrees are combined with AND.

    Returns:
        None for an empty or whitespace-only phrase (no filter contribution).
    """
    terms = (search or "").split()
    if not terms:
        return None
    return and_(*[
        or_(
            condition(given_name_path, FilterOperator.I_CONTAINS, term),
            condition(family_name_path, FilterOperator.I_CONTAINS, term),
        )
        for term in terms
    ])
