import datetime
import json
import logging
import os
from io import BytesIO
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

import requests
from PIL import Image

logger = logging.getLogger(__name__)

BACKEND_URL = os.getenv("BACKEND_URL", "http://127.0.0.1:8000")

TERMINAL_TYPES = ("complete", "error")


class PromptRejected(Exception):
    """Backend answered 400 before opening the event stream."""


def stream_generation(
    prompt: str,
    backend_url: Optional[str] = None,
    timeout: Tuple[float, float] = (10.0, 300.0),
) -> Iterator[Dict[str, Any]]:
    """Call POST /api/generate and yield each SSE event as a dict until the terminal one."""
    base = (backend_url or BACKEND_URL).rstrip("/")
    resp = requests.post(
        f"{base}/api/generate",
        json={"prompt": prompt},
        stream=True,
        timeout=timeout,
    )
    try:
        if resp.status_code == 400:
            try:
                detail = resp.json().get("error")
            except ValueError:
                detail = None
            raise PromptRejected(detail or resp.text)
        resp.raise_for_status()

        resp.encoding = "utf-8"
        for line in resp.iter_lines(decode_unicode=True):
            event = parse_sse_line(line)
            if event is None:
                continue
            yield event
            if event.get("type") in TERMINAL_TYPES:
                return
    finally:
        resp.close()


def parse_sse_line(line: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decode a `data: {...}` line; blank lines and other SSE fields give None."""
    if not line or not line.startswith("data:"):
        return None
    return json.loads(line[len("data:"):].strip())


def download_image(image_url: str) -> Tuple[Image.Image, bytes]:
    """Download the generated image and convert it to a PIL Image."""
    resp = requests.get(image_url, timeout=30)
    resp.raise_for_status()
    img = Image.open(BytesIO(resp.content)).convert("RGB")
    return img, resp.content


def generate_reply(
    prompt: str,
    on_status: Optional[Callable[[str], None]] = None,
    backend_url: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run one generation end to end and turn the outcome into an assistant chat
    message. Every failure becomes a message too, so the chat always gets a reply.
    `level` names the Streamlit alert to show (success / warning / error).
    """
    final = None
    try:
        for event in stream_generation(prompt, backend_url):
            if event.get("type") == "status":
                if on_status is not None:
                    on_status(event.get("message", ""))
            else:
                final = event

        if final is None:
            return _reply("warning", "⚠️ The stream ended without a result, please retry.")

        if final.get("type") == "error":
            return _reply("error", f"❌ {final.get('message')}")

        image_url = final["imageUrl"]
        image, img_bytes = download_image(image_url)
        reply = _reply("success", "✨ Here is your image!")
        reply.update({
            "image": image,
            "image_url": image_url,
            "download_data": img_bytes,
            "timestamp": datetime.datetime.now().strftime("%Y%m%d_%H%M%S"),
        })
        return reply

    except PromptRejected as e:
        return _reply("warning", f"⚠️ {e}")
    except Exception as e:
        logger.exception("Generation request failed")
        return _reply("error", f"❌ Error: {e}")


def _reply(level: str, content: str) -> Dict[str, Any]:
    return {"role": "assistant", "content": content, "level": level}
