"""Exception taxonomy for the assistant core.

Advisory failures (classification, search) are absorbed where they occur.
Document-affecting failures are either absorbed into a safe fallback value
or rejected whole with ProtocolValidationError.
"""


class TuonError(Exception):
    """Base class for all engine errors."""


class ClassificationError(TuonError):
    """Intent model unreachable or returned something unusable."""


class GenerationError(TuonError):
    """A generation call failed."""


class ModelCallError(GenerationError):
    """A model backend rejected or failed the request."""

    def __init__(self, provider: str, model_id: str, message: str):
        self.provider = provider
        self.model_id = model_id
        super().__init__(f"{provider} call failed for {model_id}: {message}")


class UnsupportedModelError(GenerationError):
    """No backend family is registered for the model id."""

    def __init__(self, model_id: str):
        self.model_id = model_id
        super().__init__(f"Unsupported model: {model_id}")


class SearchError(TuonError):
    """Web search capability failed or is not configured."""


class SyncError(TuonError):
    """A remote write for an artifact snapshot failed."""

    def __init__(self, artifact_id: str, message: str):
        self.artifact_id = artifact_id
        super().__init__(f"Failed to sync artifact {artifact_id}: {message}")


class ImageResolutionError(TuonError):
    """An image reference could not be turned into fetchable bytes or a URL."""

    def __init__(self, image_ref: str, message: str):
        self.image_ref = image_ref
        super().__init__(f"Could not resolve image {image_ref}: {message}")


class ProtocolValidationError(TuonError):
    """A generation result does not have the shape the editor requires."""
