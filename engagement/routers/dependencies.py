"""FastAPI dependencies shared by the routers."""

from fastapi import Depends

from engagement.config import Settings, get_settings
from engagement.engine.assembler import DashboardAssembler
from engagement.storage import EventStore, get_event_store


def get_assembler(
    store: EventStore = Depends(get_event_store),
    settings: Settings = Depends(get_settings),
) -> DashboardAssembler:
    """Dashboard assembler over the configured store, built per request."""
    return DashboardAssembler.from_settings(store, settings)
