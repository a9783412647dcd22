# backend/model.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, List, Literal, Optional

EventType = Literal["status", "complete", "error"]

SUCCEEDED_STATUSES = ("SUCCEED", "SUCCEEDED")
FAILED_STATUS = "FAILED"


class RelayConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_key: Optional[str] = None
    base_url: str
    model: str
    poll_interval: float = 3.0
    max_polls: int = 40
    request_timeout: float = 30.0


class GenerateRequest(BaseModel):
    prompt: Optional[str] = None


class ProgressEvent(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: EventType
    message: str
    image_url: Optional[str] = Field(default=None, alias="imageUrl")

    @classmethod
    def status(cls, message: str) -> "ProgressEvent":
        return cls(type="status", message=message)

    @classmethod
    def complete(cls, message: str, image_url: str) -> "ProgressEvent":
        return cls(type="complete", message=message, image_url=image_url)

    @classmethod
    def error(cls, message: str) -> "ProgressEvent":
        return cls(type="error", message=message)

    @property
    def is_terminal(self) -> bool:
        return self.type != "status"

    def to_payload(self) -> dict:
        """Wire shape: {"type", "message"} plus "imageUrl" on complete."""
        return self.model_dump(by_alias=True, exclude_none=True)


class TaskError(BaseModel):
    message: Optional[str] = None


class SubmitResult(BaseModel):
    task_id: str

    @field_validator("task_id")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("task_id is empty")
        return v


class TaskResult(BaseModel):
    """
    Body of GET v1/tasks/{task_id}.

    ModelScope has been seen returning output_images as a list of URLs, a list
    of {"url": ...} objects and a single {"url": ...} object; all three are
    normalized to a list of URL strings here.
    """

    task_id: Optional[str] = None
    task_status: str
    output_images: List[str] = Field(default_factory=list)
    error: Optional[TaskError] = None

    @field_validator("task_status", mode="before")
    @classmethod
    def _upper_status(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("output_images", mode="before")
    @classmethod
    def _normalize_images(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, (str, dict)):
            v = [v]
        if not isinstance(v, list):
            raise ValueError(f"output_images must be a list or object, got {type(v).__name__}")

        urls = []
        for item in v:
            if isinstance(item, str):
                urls.append(item)
            elif isinstance(item, dict) and isinstance(item.get("url"), str):
                urls.append(item["url"])
            else:
                raise ValueError(f"unrecognized output image entry: {item!r}")
        return urls

    @field_validator("error", mode="before")
    @classmethod
    def _error_from_string(cls, v: Any) -> Any:
        if isinstance(v, str):
            return {"message": v}
        return v

    @property
    def succeeded(self) -> bool:
        return self.task_status in SUCCEEDED_STATUSES

    @property
    def failed(self) -> bool:
        return self.task_status == FAILED_STATUS

    @property
    def image_url(self) -> Optional[str]:
        return self.output_images[0] if self.output_images else None

    @property
    def error_message(self) -> Optional[str]:
        if self.error and self.error.message:
            return self.error.message
        return None
