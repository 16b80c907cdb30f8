"""
Hub Message Schemas

Pydantic models for the WebSocket message protocol between the hub
and the agent.

Message Flow:
    1. auth (agent -> hub): Agent authenticates with its token
    2. auth (hub -> agent): Hub accepts or rejects the token
    3. query (hub -> agent): SQL statement to execute
    4. result (agent -> hub): Rows or error for the matching query id
"""

from typing import Any, List, Literal, Optional, Union
from enum import Enum

from pydantic import BaseModel, Field, ValidationError, model_validator

from .exceptions import ProtocolError

# Closed set of cell kinds that can cross the wire
Scalar = Union[None, bool, int, float, str]


class MessageType(str, Enum):
    """Types of messages in the hub protocol"""
    AUTH = "auth"
    QUERY = "query"


# ===================== Authentication Messages =====================

class AuthRequest(BaseModel):
    """Agent authentication request"""
    type: Literal["auth"] = "auth"
    token: str
    name: Optional[str] = Field(None, description="Display name of this connection")


class AuthResult(BaseModel):
    """Hub authentication response"""
    type: Literal["auth"] = "auth"
    success: bool
    error: Optional[str] = None


# ===================== Query Messages =====================

class QueryRequest(BaseModel):
    """SQL statement sent by the hub"""
    type: Literal["query"] = "query"
    id: str
    sql: str
    params: List[Any] = Field(default_factory=list)


class QueryResult(BaseModel):
    """Result of one query; error and data are mutually exclusive"""
    type: Literal["result"] = "result"
    id: str
    columns: Optional[List[str]] = None
    rows: Optional[List[List[Scalar]]] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _error_excludes_data(self):
        if self.error is not None and (self.columns is not None or self.rows is not None):
            raise ValueError("result cannot carry both an error and data")
        return self

    @classmethod
    def success(cls, query_id: str, columns: List[str], rows: List[List[Scalar]]) -> "QueryResult":
        return cls(id=query_id, columns=columns, rows=rows)

    @classmethod
    def failure(cls, query_id: str, error: str) -> "QueryResult":
        return cls(id=query_id, error=error)


# ===================== Serialization =====================

def to_wire(message: BaseModel) -> str:
    """Encode an outgoing message as a JSON text frame"""
    # exclude_none drops absent fields but keeps null cells inside rows
    return message.model_dump_json(exclude_none=True)


# ===================== Message Parsing =====================

def parse_auth_result(data: dict) -> AuthResult:
    """
    Decode the first message of a session

    Raises:
        ProtocolError: If the message is not an auth response
    """
    msg_type = data.get("type")
    if msg_type != MessageType.AUTH.value:
        raise ProtocolError(f"Expected auth response, got message type {msg_type!r}")
    try:
        return AuthResult.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"Malformed auth response: {e}") from e


def parse_hub_message(data: dict) -> Optional[QueryRequest]:
    """
    Decode a message received after the handshake

    Args:
        data: Decoded JSON object

    Returns:
        QueryRequest for query messages, None for any other type

    Raises:
        ProtocolError: If a query message does not match its schema
    """
    if data.get("type") != MessageType.QUERY.value:
        return None
    try:
        return QueryRequest.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"Malformed query message: {e}") from e
