from fastapi import Request

from arena.services.broadcast import BracketBroadcaster
from arena.services.status_sweeper import StatusSweeper


def get_broadcaster(request: Request) -> BracketBroadcaster:
    return request.app.state.broadcaster


def get_sweeper(request: Request) -> StatusSweeper:
    return request.app.state.sweeper
