"""
Grouping and Ordering

Reshapes a list's coupons into titled sections and turns drag-and-drop
gestures into a new order of the whole collection.

DESIGN DECISION: The backing collection is the single source of order.
Sections are computed views over it; a move inside one section rewrites
the backing collection so that every other section keeps its relative
order. The caller persists the result with RecordStore.reorder.

Indices follow the list-move convention: destination indices are given in
pre-removal coordinates, so moving item 0 to index 2 places it after the
item that was at index 1.
"""

from typing import Callable, Iterable, Optional, Sequence, TypeVar
from uuid import UUID

from coupon_tracker.models.coupon import Coupon
from coupon_tracker.models.lists import UNCATEGORIZED, GroupSection, MoveIntent


T = TypeVar("T")


def group_title(coupon: Coupon) -> str:
    """Section a coupon belongs to when grouping by category."""
    if coupon.category and coupon.category.strip():
        return coupon.category.strip()
    return UNCATEGORIZED


def move_items(items: Sequence[T], from_indices: Iterable[int], to_index: int) -> list[T]:
    """
    Move the items at `from_indices` so they land before `to_index`.

    `to_index` is a pre-removal position in [0, len(items)]. The moved items
    keep their relative order. Out-of-range sources are ignored.
    """
    result = list(items)
    sources = sorted({i for i in from_indices if 0 <= i < len(result)})
    if not sources:
        return result

    destination = min(max(to_index, 0), len(result))
    moving = [result[i] for i in sources]
    for i in reversed(sources):
        del result[i]

    insert_at = destination - sum(1 for i in sources if i < destination)
    result[insert_at:insert_at] = moving
    return result


class GroupingEngine:
    """
    Grouping by category and the reorder operations on grouped lists.

    Stateless; every method takes the current backing collection and
    returns a new one.
    """

    def group_by(
        self,
        coupons: Sequence[Coupon],
        managed: Sequence[str],
        display_name: Optional[Callable[[Coupon], Optional[str]]] = None,
        preserve_order: bool = False,
    ) -> list[GroupSection]:
        """
        Split coupons into titled sections.

        Section order: managed vocabulary entries first (in vocabulary
        order), then "Uncategorized", then any other titles alphabetically.
        Empty sections are left out.

        Args:
            coupons: Backing collection, in stored order
            managed: The list's category vocabulary
            display_name: Optional title function replacing the category
            preserve_order: Keep stored order within a section instead of
                           sorting by name
        """
        buckets: dict[str, list[Coupon]] = {}
        for coupon in coupons:
            title = self._title(coupon, display_name)
            buckets.setdefault(title, []).append(coupon)

        titles: list[str] = []
        for entry in managed:
            entry = entry.strip()
            if entry and entry not in titles:
                titles.append(entry)
        if UNCATEGORIZED not in titles:
            titles.append(UNCATEGORIZED)
        titles.extend(sorted(t for t in buckets if t not in titles))

        sections = []
        for title in titles:
            members = buckets.get(title)
            if not members:
                continue
            if not preserve_order:
                members = sorted(members, key=lambda c: c.name.casefold())
            sections.append(GroupSection(title=title, coupons=members))
        return sections

    def move_within_group(
        self,
        ordered: Sequence[Coupon],
        group_key: str,
        from_indices: Iterable[int],
        to_index: int,
    ) -> list[Coupon]:
        """
        Reorder coupons inside one category section.

        `from_indices` and `to_index` are positions within the section.
        They are translated to positions in the backing collection, so
        coupons of other sections do not move relative to each other.
        """
        positions = [i for i, coupon in enumerate(ordered) if group_title(coupon) == group_key]
        if not positions:
            return list(ordered)

        sources = [positions[i] for i in from_indices if 0 <= i < len(positions)]
        if to_index >= len(positions):
            destination = positions[-1] + 1
        else:
            destination = positions[max(to_index, 0)]
        return move_items(ordered, sources, destination)

    def reassign_group(
        self,
        ordered: Sequence[Coupon],
        coupon_id: UUID,
        new_group: str,
        destination_index: Optional[int] = None,
    ) -> list[Coupon]:
        """
        Move a coupon into another category section.

        The coupon's category becomes `new_group` ("Uncategorized" clears
        it). It is placed before the section member at `destination_index`,
        or after the section's last member when no index is given or the
        index is past the end. Negative indices count as 0. An empty section puts it at the end of the
        collection.
        """
        remaining = list(ordered)
        index = next((i for i, c in enumerate(remaining) if c.id == coupon_id), None)
        if index is None:
            return remaining

        coupon = remaining.pop(index)
        category = None if new_group.strip() == UNCATEGORIZED else new_group.strip()
        coupon = coupon.model_copy(update={"category": category or None})

        members = [i for i, c in enumerate(remaining) if group_title(c) == group_title(coupon)]
        if not members:
            insert_at = len(remaining)
        elif destination_index is None or destination_index >= len(members):
            insert_at = members[-1] + 1
        else:
            insert_at = members[max(destination_index, 0)]

        remaining.insert(insert_at, coupon)
        return remaining

    def apply(self, ordered: Sequence[Coupon], intent: MoveIntent) -> list[Coupon]:
        """
        Turn a drag-and-drop gesture into a new backing order.

        A drop on a row of the same section is a within-section move.
        Anything else reassigns the coupon's category.
        """
        if intent.source_group == intent.destination_group and intent.destination_index is not None:
            members = [c for c in ordered if group_title(c) == intent.source_group]
            local = next((i for i, c in enumerate(members) if c.id == intent.coupon_id), None)
            if local is None:
                return list(ordered)
            return self.move_within_group(
                ordered,
                intent.source_group,
                [local],
                intent.destination_index,
            )
        return self.reassign_group(
            ordered,
            intent.coupon_id,
            intent.destination_group,
            intent.destination_index,
        )

    @staticmethod
    def _title(
        coupon: Coupon,
        display_name: Optional[Callable[[Coupon], Optional[str]]],
    ) -> str:
        if display_name is None:
            return group_title(coupon)
        title = display_name(coupon)
        if title and title.strip():
            return title.strip()
        return UNCATEGORIZED
