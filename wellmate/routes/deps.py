from fastapi import Request

from wellmate.companion import Companion


def get_companion(request: Request) -> Companion:
    return request.app.state.companion
