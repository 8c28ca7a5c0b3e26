"""Failures that abort an export run.

Every error here is fatal: a document with missing pages is worse than no
document, so nothing retries and nothing is skipped. `exit_code` is what the
CLI hands back to the shell.
"""


class ExportError(RuntimeError):
    exit_code = 1


class MalformedInputError(ExportError):
    """The timeline document is missing attributes or has an unexpected structure."""

    exit_code = 2

    def __init__(self, message: str, index: int | None = None, element: str | None = None):
        self.index = index
        self.element = element
        if index is not None:
            message = f"{element or 'element'} {index}: {message}"
        super().__init__(message)


class ResourceMissingError(ExportError):
    exit_code = 3

    def __init__(self, path, message: str | None = None):
        self.path = str(path)
        super().__init__(message or f"resource not found: {self.path}")


class RenderError(ExportError):
    exit_code = 4

    def __init__(self, slide_index: int, detail: str):
        self.slide_index = slide_index
        super().__init__(f"An error occurred generating the PDF for slide {slide_index}:\n{detail}")


class AssemblyError(ExportError):
    exit_code = 5

    def __init__(self, expected: int, received: int, detail: str = ""):
        self.expected = expected
        self.received = received
        message = f"page merge failed: expected {expected} page(s), received {received}"
        if detail:
            message += f" ({detail})"
        super().__init__(message)
