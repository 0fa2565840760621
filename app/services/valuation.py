"""
Valuation engine - weighted-average cost of on-hand stock.

Pure arithmetic over Decimal, no database access. The movement recorder
feeds it the locked position and persists the result; the replay helpers
fold it over a ledger to rebuild a position from scratch.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, NamedTuple, Optional

from app.models.stock_movement import MovementType

# Storage scales of stock.quantity and stock.average_cost
QUANTITY_QUANTUM = Decimal('0.001')
COST_QUANTUM = Decimal('0.0001')

INBOUND_TYPES = frozenset({MovementType.ENTRY, MovementType.TRANSFER_IN, MovementType.RETURN})
OUTBOUND_TYPES = frozenset({MovementType.EXIT, MovementType.TRANSFER_OUT})


class Valuation(NamedTuple):
    """Quantity and average cost of a (warehouse, product) position."""
    quantity: Decimal
    average_cost: Decimal

    @property
    def value(self) -> Decimal:
        return self.quantity * self.average_cost


ZERO_VALUATION = Valuation(Decimal('0'), Decimal('0'))


def resolve_position(position) -> Valuation:
    """Turn an optional stored position (row, Valuation or None) into a Valuation."""
    if position is None:
        return ZERO_VALUATION
    if isinstance(position, Valuation):
        return position
    return Valuation(
        Decimal(str(position.quantity or 0)),
        Decimal(str(position.average_cost or 0)),
    )


def apply_movement(current: Optional[Valuation], movement_type: MovementType,
                   quantity: Decimal, unit_cost: Optional[Decimal] = None) -> Valuation:
    """
    Compute the position that results from applying one movement.

    Inbound movements with a positive unit cost blend into the average cost;
    outbound movements and adjustments never touch it. A resulting negative
    quantity is returned as is: rejecting oversell is the caller's policy.
    """
    current = resolve_position(current)
    quantity = Decimal(quantity)
    cost = Decimal(unit_cost) if unit_cost is not None else Decimal('0')

    if movement_type in INBOUND_TYPES:
        new_quantity = current.quantity + quantity
        if cost > 0 and new_quantity > 0:
            blended = (current.quantity * current.average_cost + quantity * cost) / new_quantity
            return Valuation(new_quantity, blended.quantize(COST_QUANTUM, rounding=ROUND_HALF_UP))
        return Valuation(new_quantity, current.average_cost)

    if movement_type in OUTBOUND_TYPES:
        return Valuation(current.quantity - quantity, current.average_cost)

    if movement_type is MovementType.ADJUSTMENT:
        # Absolute correction: replaces the quantity
        return Valuation(quantity, current.average_cost)

    raise ValueError(f'Unhandled movement type: {movement_type!r}')


def replay(movements: Iterable, start: Optional[Valuation] = None) -> Valuation:
    """
    Fold the engine over ledger entries, oldest first.

    Accepts StockMovement rows or any object exposing type, quantity and
    unit_cost attributes.
    """
    position = resolve_position(start)
    for movement in movements:
        position = apply_movement(position, movement.type, movement.quantity, movement.unit_cost)
    return position
