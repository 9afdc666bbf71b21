from __future__ import annotations

from typing import Protocol

from ..core.exceptions import EvidenceCaptureError


class EvidenceCapture(Protocol):
    """Camera collaborator returning an opaque photo reference (URI or handle)."""

    async def capture(self) -> str:
        raise NotImplementedError


async def capture_photos(camera: EvidenceCapture, count: int) -> list[str]:
    """Take `count` photos, failing as a whole if any capture fails."""
    refs: list[str] = []
    for _ in range(int(count)):
        try:
            ref = await camera.capture()
        except EvidenceCaptureError:
            raise
        except Exception as exc:
            raise EvidenceCaptureError(f"Camera capture failed: {exc}") from exc
        if not ref:
            raise EvidenceCaptureError("Camera returned an empty photo reference")
        refs.append(str(ref))
    return refs
