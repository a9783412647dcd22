import json
import uuid

from .model import ProgressEvent


def gen_request_id() -> str:
    return str(uuid.uuid4())


def format_sse(event: ProgressEvent) -> str:
    """
    Serialize one event as a single SSE frame: `data: <JSON>\\n\\n`.
    """
    return f"data: {json.dumps(event.to_payload(), ensure_ascii=False)}\n\n"

