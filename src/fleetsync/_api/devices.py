"""Device discovery endpoint.

Method:
  - Get (typeName="Device")
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from fleetsync._api._common import call_authenticated
from fleetsync._constants import DEVICE_TYPE_NAME
from fleetsync._redact import redact_for_log
from fleetsync._transport import Transport
from fleetsync.exceptions import FleetSyncMalformedResponseError
from fleetsync.models.device import Device
from fleetsync.session import Session

_logger = logging.getLogger(__name__)


def parse_devices(result: object) -> list[Device]:
    """Parse a ``Get`` result into devices, skipping entries without an id."""
    if not isinstance(result, list):
        raise FleetSyncMalformedResponseError(
            f"Get {DEVICE_TYPE_NAME} result is not a list",
            code="invalid_result",
            method="Get",
        )
    devices: list[Device] = []
    seen: set[str] = set()
    for item in result:
        try:
            device = Device.model_validate(item)
        except ValidationError:
            _logger.warning("Skipping unparseable device entry: %s", redact_for_log(item))
            continue
        if device.id in seen:
            continue
        seen.add(device.id)
        devices.append(device)
    return devices


async def fetch_devices(session: Session, transport: Transport) -> list[Device]:
    """Fetch every device visible to the session's user."""
    result = await call_authenticated(
        session=session,
        transport=transport,
        method="Get",
        params={"typeName": DEVICE_TYPE_NAME},
    )
    return parse_devices(result)
