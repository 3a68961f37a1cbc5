"""Ticket number generation."""
import logging

from doorcheck.core.clock import Clock
from doorcheck.models import Attendee
from doorcheck.models.attendee import MAX_TICKETS

logger = logging.getLogger(__name__)

TICKET_PREFIX = "TKT"


class TicketIssuer:
    """Stamps attendees with ticket identifiers.

    Identifiers are ``TKT`` plus the last 8 digits of a millisecond time
    source. The source is bumped once per generated ticket and never goes
    backwards, so two tickets from the same issuer never share a number even
    when they are generated within the same millisecond.
    """

    def __init__(self, clock: Clock):
        self.clock = clock
        self._last_millis = 0

    def _next_millis(self) -> int:
        self._last_millis = max(self.clock.millis(), self._last_millis + 1)
        return self._last_millis

    def next_ticket_number(self) -> str:
        return f"{TICKET_PREFIX}{str(self._next_millis())[-8:]}"

    def issue(self, attendee: Attendee) -> Attendee:
        """
        Return a copy of the attendee holding freshly issued tickets.

        Generates ``ticket_count`` identifiers (1 if unset, never more than
        10). Any previous tickets are replaced, not added to, and the
        validation flag is cleared.
        """
        count = min(max(attendee.ticket_count or 1, 1), MAX_TICKETS)
        ticket_numbers = [self.next_ticket_number() for _ in range(count)]

        issued = attendee.model_copy(
            update={
                "has_ticket": True,
                "ticket_number": ticket_numbers[0],
                "ticket_numbers": ticket_numbers,
                "ticket_count": count,
                "is_validated": False,
                "validated_at": None,
                "validated_by": None,
            }
        )

        # Delivery is simulated: the tickets are only logged.
        logger.info(f"Sending {count} ticket(s) to {issued.name} ({issued.email})")
        for index, number in enumerate(ticket_numbers, start=1):
            logger.info(f"  Ticket {index}: {number}")
        if issued.guest_name and count > 1:
            school = f" ({issued.guest_school})" if issued.guest_school else ""
            logger.info(f"  Guest: {issued.guest_name}{school}")

        return issued
