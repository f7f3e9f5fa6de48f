"""Query package: smart list rules, aggregation and grouping."""

from coupon_tracker.queries.aggregation import AggregationEngine
from coupon_tracker.queries.conditions import evaluate_condition, implied_type, matches
from coupon_tracker.queries.grouping import GroupingEngine, group_title, move_items

__all__ = [
    "AggregationEngine",
    "GroupingEngine",
    "evaluate_condition",
    "group_title",
    "implied_type",
    "matches",
    "move_items",
]
