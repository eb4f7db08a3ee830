"""Daily order-number counter.

One ``OrderSequence`` record per calendar day (UTC), keyed by ``YYMMDD``.
Numbers are allocated by incrementing that record under the day's lock, so
two checkouts can never be handed the same number.

Format: ``ORD`` + YYMMDD + 4-digit sequence, e.g. ``ORD2610190001``.
"""

from datetime import UTC, datetime

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Integer, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.utils.dispatch import dispatch
from ordering.utils.locks import sequence_key

PREFIX = "ORD"


@ordering.aggregate
class OrderSequence:
    day = String(max_length=6, identifier=True)  # YYMMDD
    last_value = Integer(default=0, min_value=0)

    def next_value(self) -> int:
        self.last_value = (self.last_value or 0) + 1
        return self.last_value


@ordering.command(part_of="OrderSequence")
class AllocateOrderNumber:
    day = String(required=True, max_length=6)


def day_key(moment: datetime | None = None) -> str:
    return (moment or datetime.now(UTC)).strftime("%y%m%d")


def format_order_number(day: str, value: int) -> str:
    return f"{PREFIX}{day}{value:04d}"


@ordering.command_handler(part_of=OrderSequence)
class OrderSequenceHandler:
    @handle(AllocateOrderNumber)
    def allocate(self, command):
        repo = current_domain.repository_for(OrderSequence)
        try:
            sequence = repo.get(command.day)
        except ObjectNotFoundError:
            sequence = OrderSequence(day=command.day)
        value = sequence.next_value()
        repo.add(sequence)
        return format_order_number(command.day, value)


def next_order_number(moment: datetime | None = None) -> str:
    day = day_key(moment)
    return dispatch(AllocateOrderNumber(day=day), sequence_key(day))
