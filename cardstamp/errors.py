from __future__ import annotations


class RenderError(Exception):
    """Base class for failures that abort a render."""


class TemplateUnavailable(RenderError):
    pass


class BackgroundUnresolvable(RenderError):
    """Neither the template background nor the fallback asset could be loaded."""


class InvalidTemplateShape(ValueError):
    pass


class AssetError(RuntimeError):
    def __init__(self, source: str, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.source = source
        self.status_code = status_code


class AssetAcquisitionFailed(RenderError):
    def __init__(
        self,
        element_name: str,
        element_index: int,
        source: str,
        cause: BaseException,
    ) -> None:
        status_code = getattr(cause, "status_code", None)
        detail = f"{status_code}" if status_code is not None else str(cause)
        super().__init__(f"Failed to load image ({element_name}, element #{element_index}): {detail}")
        self.element_name = element_name
        self.element_index = element_index
        self.source = source
        self.status_code = status_code
        self.cause = cause
