from fastapi import Request

from botanic.services.hub import ConnectionHub


def get_hub(request: Request) -> ConnectionHub:
    return request.app.state.hub
