"""Service factory dependencies."""

from typing import Annotated

from fastapi import Depends

from src.tapcards.api.dependencies.db import DBSession
from src.tapcards.services.engine import ProvisioningEngine


def get_engine_service(session: DBSession) -> ProvisioningEngine:
    """Get the provisioning engine bound to the request session."""
    return ProvisioningEngine(session)


EngineDep = Annotated[ProvisioningEngine, Depends(get_engine_service)]
