from typing import Generic, TypeVar, Optional, List, Any
from pydantic import BaseModel

T = TypeVar("T")


# Envelope shared by every JSON endpoint
class ResponseModel(BaseModel, Generic[T]):
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


# ====== Error bodies ======
class FieldError(BaseModel):
    field: str
    message: str
    type: str


class ErrorResponse(BaseModel):
    success: bool = False
    code: int
    error: str
    message: str
    errors: Optional[List[FieldError]] = None
    detail: Optional[Any] = None


# ====== Generic payloads ======
class DeleteResponse(BaseModel):
    id: int
    detail: str


class PageResponse(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    page_size: int
