"""Request and response models for the HTTP API."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint."""

    status: str = Field(..., description="Health status of the service")
    tools: list[str] = Field(default_factory=list, description="Exposed tool names")
    providers: list[str] = Field(default_factory=list, description="Connected providers")


class ChatRequest(BaseModel):
    """A single query to answer."""

    query: str = ""


class ChatResponse(BaseModel):
    """The final text produced for a query."""

    response: str


class ErrorResponse(BaseModel):
    error: str
