"""
botanic.schemas
~~~~~~~~~~~~~~~
Pydantic schemas and models for the API and the WebSocket wire protocol.
"""
from botanic.schemas.api_response import ApiResponse
from botanic.schemas.rooms import RoomInfoData
from botanic.schemas.ws_messages import (
    AssistantMessage,
    ChatFrame,
    ErrorMessage,
    Ping,
    StopCommand,
    TypingIndicator,
    UserMessage,
    decode_frame,
    encode_frame,
)

# Call model_rebuild to resolve forward references in generic Pydantic models.
ApiResponse.model_rebuild()
