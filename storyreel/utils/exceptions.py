"""
Custom Exceptions for StoryReel
Structured error handling with recovery hints
"""

from typing import Optional, Dict, Any


class StoryReelError(Exception):
    """Base exception for all StoryReel errors"""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        recoverable: bool = False,
        recovery_hint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.recoverable = recoverable
        self.recovery_hint = recovery_hint
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to JSON-serializable dict"""
        return {
            "error": self.code,
            "message": self.message,
            "recoverable": self.recoverable,
            "recovery_hint": self.recovery_hint,
            "details": self.details
        }


# ============================================================================
# Input Errors
# ============================================================================

class NoRenderableScenesError(StoryReelError):
    """Project has no scenes that can be rendered"""

    def __init__(self, project_id: Optional[int] = None):
        super().__init__(
            message="No renderable scenes",
            code="NO_RENDERABLE_SCENES",
            recoverable=False,
            recovery_hint="Generate at least one scene image (inside the requested scene range) before rendering.",
            details={"project_id": project_id}
        )


class MissingAudioError(StoryReelError):
    """Narration audio is missing or unreadable"""

    def __init__(self, message: str, project_id: Optional[int] = None, path: Optional[str] = None):
        super().__init__(
            message=message,
            code="MISSING_AUDIO",
            recoverable=False,
            recovery_hint="Generate or upload the narration track, or request a preview render.",
            details={"project_id": project_id, "path": path}
        )


class ImageSourceError(StoryReelError):
    """Scene image could not be loaded from any source form"""

    def __init__(self, message: str, source: Optional[str] = None, scene_number: Optional[int] = None):
        # Inline data URIs can be megabytes long
        if source and len(source) > 120:
            source = source[:120] + "..."
        super().__init__(
            message=message,
            code="IMAGE_SOURCE_ERROR",
            recoverable=False,
            recovery_hint="Regenerate the scene image or check that its URL is reachable.",
            details={"source": source, "scene_number": scene_number}
        )


class SceneRecordError(StoryReelError):
    """A stored scene record cannot be read"""

    def __init__(self, project_id: int, scene_number: int, reason: str):
        super().__init__(
            message=f"Scene {scene_number} of project {project_id} has an unreadable record",
            code="SCENE_RECORD_ERROR",
            recoverable=False,
            recovery_hint="Save the scene again before rendering.",
            details={"project_id": project_id, "scene_number": scene_number, "reason": reason[:300]}
        )


# ============================================================================
# Encoder Errors
# ============================================================================

class FFmpegError(StoryReelError):
    """FFmpeg execution error"""

    def __init__(self, message: str, command: Optional[str] = None, stderr: Optional[str] = None):
        super().__init__(
            message=message,
            code="FFMPEG_ERROR",
            recoverable=True,
            recovery_hint="Ensure FFmpeg is installed and in PATH. Check the scene images and audio aren't corrupted.",
            details={"command": command, "stderr": stderr[-500:] if stderr else None}
        )


class FFmpegTimeoutError(FFmpegError):
    """FFmpeg exceeded its wall-clock limit"""

    def __init__(self, timeout_seconds: float, command: Optional[str] = None, stderr: Optional[str] = None):
        super().__init__(
            message=f"FFmpeg timed out after {timeout_seconds:g}s",
            command=command,
            stderr=stderr
        )
        self.code = "FFMPEG_TIMEOUT"
        self.details["timeout_seconds"] = timeout_seconds


class OutputIntegrityError(StoryReelError):
    """Encoder reported success but the output is missing or implausibly small"""

    def __init__(self, message: str, output_path: Optional[str] = None, size: Optional[int] = None):
        super().__init__(
            message=message,
            code="OUTPUT_INTEGRITY_ERROR",
            recoverable=True,
            recovery_hint="Check free disk space and the encoder logs, then submit the render again.",
            details={"output_path": output_path, "size": size}
        )


# ============================================================================
# Cloud & Upload Errors
# ============================================================================

class S3UploadError(StoryReelError):
    """Error uploading to S3"""

    def __init__(self, message: str, bucket: Optional[str] = None, key: Optional[str] = None):
        super().__init__(
            message=message,
            code="S3_UPLOAD_ERROR",
            recoverable=True,
            recovery_hint="Check AWS credentials and bucket permissions. Submit the render again.",
            details={"bucket": bucket, "key": key}
        )


# ============================================================================
# Job Errors
# ============================================================================

class JobNotFoundError(StoryReelError):
    """Job not found"""

    def __init__(self, job_id: str):
        super().__init__(
            message=f"Job not found: {job_id}",
            code="JOB_NOT_FOUND",
            recoverable=False,
            details={"job_id": job_id}
        )


class JobStateError(StoryReelError):
    """Operation not allowed in the job's current status"""

    def __init__(self, job_id: str, status: str, operation: str):
        super().__init__(
            message=f"Cannot {operation} job {job_id} while it is {status}",
            code="JOB_STATE_ERROR",
            recoverable=True,
            recovery_hint="Wait for the job to reach a terminal status and try again.",
            details={"job_id": job_id, "status": status}
        )
