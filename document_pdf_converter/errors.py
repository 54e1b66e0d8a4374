"""
Exception taxonomy for the conversion pipeline.
"""


class DocumentPdfError(RuntimeError):
	"""Base class for all converter errors."""


class ConfigurationError(DocumentPdfError):
	"""Raised when a ConversionConfig holds an unusable value."""


#============================================
# Validation stage

class DocumentError(DocumentPdfError):
	"""Raised when the document description is structurally invalid."""

	def __init__(self, message: str, block_index: int | None = None) -> None:
		self.block_index = block_index
		if block_index is not None:
			message = f"block {block_index}: {message}"
		super().__init__(message)


class InvalidGeometryError(DocumentError):
	"""Raised for bad page dimensions, margins or placement sizes."""


class DanglingResourceReferenceError(DocumentError):
	"""Raised when a block names a font or image that was never declared."""

	def __init__(self, resource_name: str, block_index: int | None = None) -> None:
		self.resource_name = resource_name
		super().__init__(f"undeclared resource {resource_name!r}", block_index)


class InvalidStyleError(DocumentError):
	"""Raised when a font size, color channel or tracking value is out of range."""


class EmptyTextRunError(DocumentError):
	"""Raised when a text run is empty without being marked as allowed."""


class DuplicateResourceError(DocumentError):
	"""Raised when two declarations share one name."""


#============================================
# Layout stage

class LoadError(DocumentPdfError):
	"""Raised by a resource loader when a font or image cannot be read."""


class LayoutError(DocumentPdfError):
	"""Raised when the layout engine cannot place the document."""


class ContentOverflowError(LayoutError):
	"""Raised under the strict policy when content passes the page bottom."""

	def __init__(self, block_index: int, page_index: int) -> None:
		self.block_index = block_index
		self.page_index = page_index
		super().__init__(
			f"block {block_index}: content overflows page {page_index} under the strict policy"
		)


class ElementTooLargeError(LayoutError):
	"""Raised when one element cannot fit an empty content rectangle."""

	def __init__(self, block_index: int | None, detail: str) -> None:
		self.block_index = block_index
		if block_index is None:
			super().__init__(detail)
		else:
			super().__init__(f"block {block_index}: {detail}")


class ResourceUnavailableError(LayoutError):
	"""Raised when the loader fails for a resource key."""

	def __init__(self, key: str, reason: str = "") -> None:
		self.key = key
		message = f"resource unavailable: {key}"
		if reason:
			message += f" ({reason})"
		super().__init__(message)


#============================================
# Assembly and output

class AssemblerError(DocumentPdfError):
	"""Raised when the assembler cannot build the object graph."""


class InvariantViolation(AssemblerError):
	"""Raised on internal inconsistencies that indicate a bug upstream."""


class OutputError(DocumentPdfError):
	"""Raised when writing the final bytes fails."""


#============================================
# Surfaces

class AuthoringError(DocumentPdfError):
	"""Raised when the manual authoring API is misused."""


class DescriptionError(DocumentPdfError):
	"""Raised when a JSON document description is malformed."""


class ConversionError(DocumentPdfError):
	"""
	Tagged error raised by the conversion driver.

	The stage names where the pipeline stopped; the original error is kept
	on `error` and chained as the cause.
	"""

	def __init__(self, stage: str, error: Exception) -> None:
		self.stage = stage
		self.error = error
		super().__init__(f"{stage} failed: {error}")
