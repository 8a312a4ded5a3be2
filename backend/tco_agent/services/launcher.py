"""
Fire-and-forget dispatch of pipeline runs.

Each ticket runs on its own daemon thread; the webhook handler returns
without waiting.  Runs share no mutable state.
"""

import logging
import threading
from typing import Callable, Optional

from tco_agent.models.ticket import Ticket
from tco_agent.services.pipeline import TicketPipeline, build_default_pipeline

logger = logging.getLogger(__name__)


class TicketLauncher:
    """
    Starts one pipeline run per ticket.

    on_launch, when given, receives every started thread; tests use it to
    join runs instead of sleeping.
    """

    def __init__(
        self,
        pipeline: TicketPipeline,
        on_launch: Optional[Callable[[threading.Thread], None]] = None,
    ):
        self.pipeline = pipeline
        self.on_launch = on_launch

    def _run(self, ticket: Ticket) -> None:
        try:
            self.pipeline.process(ticket)
        except Exception:
            logger.exception(f"Ticket {ticket.id}: pipeline run crashed")

    def launch(self, ticket: Ticket) -> threading.Thread:
        thread = threading.Thread(
            target=self._run,
            args=(ticket,),
            name=f"ticket-{ticket.id}",
            daemon=True,
        )
        thread.start()
        logger.info(f"Ticket {ticket.id}: pipeline run launched")
        if self.on_launch is not None:
            self.on_launch(thread)
        return thread


_default_launcher: Optional[TicketLauncher] = None


def get_ticket_launcher() -> TicketLauncher:
    """FastAPI dependency returning the process-wide launcher."""
    global _default_launcher
    if _default_launcher is None:
        _default_launcher = TicketLauncher(build_default_pipeline())
    return _default_launcher
