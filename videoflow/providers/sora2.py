"""
Sora2 video provider for the juxin and zhenzhen platforms.

Both platforms expose the same model family behind different endpoints and
request shapes. This adapter translates a generic job spec into the platform's
create payload and normalizes status answers to ``TaskStatusData``.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import httpx

from ..core.error_recovery import RetryConfig, execute_with_retry
from ..core.exceptions import DownloadError, ProviderError, TransientError, VideoFlowError
from ..core.logging import get_logger
from .base import CharacterResult, StatusResult, SubmitResult, TaskProvider, TaskState, TaskStatusData

logger = get_logger(__name__)

VALID_MODELS = ("sora-2-all", "sora-2", "sora-2-pro")
VALID_DURATIONS = (10, 15, 25)
CHARACTER_PATH = "/sora/v1/characters"
CHARACTER_FIELDS = ("id", "username", "permalink", "profile_picture_url")

_VENDOR_STATUS = {
    "queued": TaskState.IN_PROGRESS,
    "pending": TaskState.NOT_START,
    "processing": TaskState.IN_PROGRESS,
    "in_progress": TaskState.IN_PROGRESS,
    "completed": TaskState.SUCCESS,
    "succeeded": TaskState.SUCCESS,
    "failed": TaskState.FAILURE,
    "error": TaskState.FAILURE,
}

_MP4_SEGMENT = re.compile(r"/([^/]+\.mp4)")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


@dataclass(frozen=True)
class PlatformSpec:
    """Endpoint layout and request conventions of one platform."""
    name: str
    base_url: str
    create_path: str
    uses_aspect_ratio: bool
    default_model: str


PLATFORMS: Dict[str, PlatformSpec] = {
    "juxin": PlatformSpec(
        name="juxin",
        base_url="https://api.jxincm.cn",
        create_path="/v1/video/create",
        uses_aspect_ratio=False,
        default_model="sora-2-all",
    ),
    "zhenzhen": PlatformSpec(
        name="zhenzhen",
        base_url="https://ai.t8star.cn",
        create_path="/v2/videos/generations",
        uses_aspect_ratio=True,
        default_model="sora-2",
    ),
}


def normalize_status(raw: Any) -> TaskState:
    """Map a vendor status string onto ``TaskState``. Unknown values count as running."""
    value = str(raw or "")
    try:
        return TaskState(value.upper())
    except ValueError:
        return _VENDOR_STATUS.get(value.lower(), TaskState.IN_PROGRESS)


def build_character_body(timestamps: str, url: Optional[str] = None, from_task: Optional[str] = None) -> Dict[str, Any]:
    """
    Payload for character extraction. ``timestamps`` is "start,end" in seconds and
    must span 1 to 3 seconds; the clip comes from ``url`` or from a finished task.

    Raises:
        ValueError: If the timestamps are missing or malformed, or no source is given
    """
    if not timestamps:
        raise ValueError("timestamps is required")
    if not url and not from_task:
        raise ValueError("url or from_task is required")

    try:
        start, end = (float(part) for part in str(timestamps).split(","))
    except ValueError:
        raise ValueError("timestamps must be formatted as 'start,end'") from None
    if not 1 <= end - start <= 3:
        raise ValueError("timestamps must span 1 to 3 seconds")

    body: Dict[str, Any] = {"timestamps": timestamps}
    if url:
        body["url"] = url
    if from_task:
        body["from_task"] = from_task
    return body


def output_filename(task_id: str, url: str) -> str:
    """File name for a downloaded video: the URL's ``.mp4`` segment or the sanitized task id."""
    match = _MP4_SEGMENT.search(url)
    if match:
        return match.group(1)
    return f"{_UNSAFE_FILENAME_CHARS.sub('_', task_id)}.mp4"


class Sora2Provider(TaskProvider):
    """
    ``TaskProvider`` backed by the Sora2 HTTP API.

    Transport failures, 429 and 5xx answers are retried with ``execute_with_retry``;
    everything else is reported through ``success=False`` results.
    """

    provider_name = "sora2"

    def __init__(
        self,
        platform: str = "juxin",
        api_key: str = "",
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        download_timeout: float = 300.0,
        retry_config: Optional[RetryConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Args:
            platform: ``juxin`` or ``zhenzhen``
            api_key: Bearer token for the platform
            base_url: Override of the platform's default base URL
            timeout: Timeout in seconds for create and query calls
            download_timeout: Timeout in seconds for video downloads
            retry_config: Retry policy for transient failures
            client: Pre-built client; the provider closes only clients it created
        """
        key = platform.lower()
        if key not in PLATFORMS:
            raise ValueError(f"Unknown Sora2 platform: {platform}. Supported: {list(PLATFORMS)}")

        self.platform = PLATFORMS[key]
        self.provider_name = f"sora2-{key}"
        self.api_key = api_key
        self.base_url = base_url or self.platform.base_url
        self.timeout = timeout
        self.download_timeout = download_timeout
        self.retry_config = retry_config or RetryConfig()

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    def build_create_body(self, job_spec: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate a job spec and translate it into the platform's create payload.

        Raises:
            ValueError: If the prompt is missing or the model or duration is not supported
        """
        prompt = job_spec.get("prompt")
        if not prompt:
            raise ValueError("prompt is required")

        duration = job_spec.get("duration", 10)
        try:
            duration_value = int(duration)
        except (TypeError, ValueError):
            duration_value = None
        if duration_value not in VALID_DURATIONS:
            raise ValueError(f"duration must be one of {', '.join(str(d) for d in VALID_DURATIONS)}")

        return self._format_body(job_spec, prompt, list(job_spec.get("images") or []), duration_value)

    def build_storyboard_body(self, storyboard: Dict[str, Any]) -> Dict[str, Any]:
        """
        Fold a multi-shot storyboard into a single create payload.

        Each shot becomes a ``Shot N`` block of the prompt and shot images are
        appended to the global reference images. The task duration is the
        storyboard's ``duration`` or else the sum of the shot durations. juxin has
        no multi-shot endpoint, so there the result must also be a valid plain task.

        Raises:
            ValueError: If shots are missing or malformed, or a setting is not supported
        """
        shots = storyboard.get("shots")
        if not shots or not isinstance(shots, list) or not all(isinstance(shot, dict) for shot in shots):
            raise ValueError("shots must be a non-empty list of shot objects")

        try:
            total = sum(float(shot.get("duration") or 0) for shot in shots)
        except (TypeError, ValueError):
            raise ValueError("shot durations must be numbers") from None

        prompt = "\n\n".join(
            f"Shot {index}:\nduration: {shot.get('duration')}sec\nScene: {shot.get('scene')}"
            for index, shot in enumerate(shots, start=1)
        )
        images = list(storyboard.get("images") or [])
        images.extend(shot["image"] for shot in shots if shot.get("image"))
        duration = storyboard.get("duration") or int(total)

        if not self.platform.uses_aspect_ratio:
            return self.build_create_body({**storyboard, "prompt": prompt, "images": images, "duration": duration})

        try:
            duration_value = int(duration)
        except (TypeError, ValueError):
            raise ValueError("duration must be a number") from None
        return self._format_body(storyboard, prompt, images, duration_value)

    def _format_body(self, spec: Dict[str, Any], prompt: str, images: List[Any], duration: int) -> Dict[str, Any]:
        model = spec.get("model") or self.platform.default_model
        if model not in VALID_MODELS:
            raise ValueError(f"model must be one of {', '.join(VALID_MODELS)}")

        orientation = spec.get("orientation", "landscape")
        size = spec.get("size", "small")

        body: Dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "images": images,
            "watermark": bool(spec.get("watermark", False)),
            "private": bool(spec.get("private", True)),
        }

        if self.platform.uses_aspect_ratio:
            body["aspect_ratio"] = "9:16" if orientation in ("portrait", "9:16") else "16:9"
            body["duration"] = str(duration)
            body["hd"] = size if isinstance(size, bool) else size == "large"
        else:
            body["orientation"] = "portrait" if orientation in ("portrait", "9:16") else "landscape"
            body["duration"] = duration
            body["size"] = "large" if size == "large" else "small"

        return body

    async def submit(self, job_spec: Dict[str, Any]) -> SubmitResult:
        return await self._create(self.build_create_body, job_spec, "task")

    async def create_storyboard(self, storyboard: Dict[str, Any]) -> SubmitResult:
        return await self._create(self.build_storyboard_body, storyboard, "storyboard task")

    async def _create(
        self,
        build_body: Callable[[Dict[str, Any]], Dict[str, Any]],
        spec: Dict[str, Any],
        kind: str
    ) -> SubmitResult:
        try:
            body = build_body(spec)
        except ValueError as e:
            return SubmitResult(success=False, error=str(e))

        try:
            response = await self._request("POST", self.platform.create_path, json=body)
            payload = response.json()
        except (VideoFlowError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"Sora2 {self.platform.name} {kind} creation failed: {e}")
            return SubmitResult(success=False, error=_message(e))

        task_id = (payload.get("id") or payload.get("task_id")) if isinstance(payload, dict) else None
        if not task_id:
            return SubmitResult(success=False, error="Provider response carried no task id")

        logger.info(f"Sora2 {self.platform.name} {kind} created: {task_id}")
        return SubmitResult(success=True, task_id=str(task_id))

    async def create_character(
        self,
        timestamps: str,
        url: Optional[str] = None,
        from_task: Optional[str] = None
    ) -> CharacterResult:
        try:
            body = build_character_body(timestamps, url=url, from_task=from_task)
        except ValueError as e:
            return CharacterResult(success=False, error=str(e))

        try:
            response = await self._request("POST", CHARACTER_PATH, json=body)
            payload = response.json()
        except (VideoFlowError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"Sora2 {self.platform.name} character creation failed: {e}")
            return CharacterResult(success=False, error=_message(e))

        if not isinstance(payload, dict) or not payload.get("id"):
            return CharacterResult(success=False, error="Provider response carried no character id")

        character = {key: payload.get(key) for key in CHARACTER_FIELDS}
        logger.info(f"Sora2 {self.platform.name} character created: {character['id']}")
        return CharacterResult(success=True, character=character)

    async def get_status(self, task_id: str) -> StatusResult:
        if not task_id:
            return StatusResult(success=False, error="task_id is required")

        try:
            if self.platform.uses_aspect_ratio:
                response = await self._request("GET", f"/v2/videos/generations/{task_id}")
                data = self._parse_unified(response.json())
            else:
                response = await self._request("GET", "/v1/video/query", params={"id": task_id})
                data = self._parse_juxin(response.json())
        except (VideoFlowError, httpx.HTTPError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Sora2 {self.platform.name} status query for {task_id} failed: {e}")
            return StatusResult(success=False, error=_message(e))

        return StatusResult(success=True, data=data)

    async def download(self, task_id: str, target_dir: str) -> str:
        status = await self.get_status(task_id)
        if not status.success or status.data is None:
            raise DownloadError(f"Could not read task status: {status.error}", task_id=task_id)
        if status.data.status != TaskState.SUCCESS:
            raise DownloadError(f"Task is not finished, current status: {status.data.status.value}", task_id=task_id)

        url = status.data.output
        if not url or not isinstance(url, str):
            raise DownloadError("Task has no video URL", task_id=task_id)

        directory = Path(target_dir)
        file_path = directory / output_filename(task_id, url)

        opened = False
        try:
            directory.mkdir(parents=True, exist_ok=True)
            async with self._client.stream("GET", url, timeout=self.download_timeout) as response:
                response.raise_for_status()
                with open(file_path, "wb") as handle:
                    opened = True
                    async for chunk in response.aiter_bytes():
                        handle.write(chunk)
        except (httpx.HTTPError, OSError) as e:
            if opened:
                _discard_partial(file_path)
            raise DownloadError(f"Video download failed: {e}", task_id=task_id) from e

        logger.info(f"Downloaded task {task_id} to {file_path}")
        return str(file_path)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        return await execute_with_retry(
            self._send,
            self.retry_config,
            method,
            path,
            operation=f"sora2_{self.platform.name}_{method.lower()}",
            **kwargs
        )

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TransportError as e:
            raise TransientError(f"{method} {path} failed: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientError(f"{method} {path} answered {response.status_code}")

        if response.status_code >= 400:
            raise ProviderError(
                _error_text(response),
                status_code=response.status_code,
                endpoint=path
            )

        return response

    def _parse_juxin(self, payload: Dict[str, Any]) -> TaskStatusData:
        detail = payload.get("detail") or {}

        output = payload.get("video_url") or detail.get("url")
        if not output:
            output = (detail.get("draft_info") or {}).get("downloadable_url")

        return TaskStatusData(
            status=normalize_status(payload.get("status")),
            progress=_juxin_progress(payload),
            output=output,
            fail_reason=payload.get("fail_reason") or None,
        )

    def _parse_unified(self, payload: Dict[str, Any]) -> TaskStatusData:
        data = payload.get("data") or {}
        return TaskStatusData(
            status=normalize_status(payload.get("status")),
            progress=payload.get("progress"),
            output=data.get("output") if isinstance(data, dict) else None,
            fail_reason=payload.get("fail_reason") or None,
        )


def _juxin_progress(payload: Dict[str, Any]) -> Any:
    pending_info = (payload.get("detail") or {}).get("pending_info") or {}
    fraction = pending_info.get("progress_pct")
    if fraction is not None and not isinstance(fraction, bool):
        try:
            return round(float(fraction) * 100)
        except (TypeError, ValueError, OverflowError):
            logger.debug(f"Ignoring unreadable progress_pct: {fraction!r}")
    progress = payload.get("progress")
    if isinstance(progress, (int, float)) and not isinstance(progress, bool):
        return progress
    return 0


def _discard_partial(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove partial download {path}: {e}")


def _error_text(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return f"HTTP {response.status_code}: {response.text[:200]}"
    if isinstance(payload, dict):
        return str(payload.get("message") or payload.get("error") or payload)
    return str(payload)


def _message(error: Exception) -> str:
    if isinstance(error, VideoFlowError):
        return error.message
    return str(error) or type(error).__name__
