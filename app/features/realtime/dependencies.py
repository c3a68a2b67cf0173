from typing import Annotated
from fastapi import Depends
from starlette.requests import HTTPConnection

from app.features.realtime.broker import ChannelBroker


def get_broker(connection: HTTPConnection) -> ChannelBroker:
    """The process-wide broker created at application start."""
    return connection.app.state.broker


Broker = Annotated[ChannelBroker, Depends(get_broker)]
