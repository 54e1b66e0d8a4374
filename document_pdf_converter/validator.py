"""
Structural checks that turn a Document into a ValidatedDocument.
"""

# Standard Library
import dataclasses
import math

# local repo modules
import document_pdf_converter as dpc
import document_pdf_converter.config
import document_pdf_converter.errors
import document_pdf_converter.model


Document = dpc.model.Document
FontDeclaration = dpc.model.FontDeclaration
ImageDeclaration = dpc.model.ImageDeclaration
ImageBlock = dpc.model.ImageBlock
TextBlock = dpc.model.TextBlock
TextStyle = dpc.model.TextStyle

DocumentError = dpc.errors.DocumentError
InvalidGeometryError = dpc.errors.InvalidGeometryError
InvalidStyleError = dpc.errors.InvalidStyleError
DanglingResourceReferenceError = dpc.errors.DanglingResourceReferenceError
EmptyTextRunError = dpc.errors.EmptyTextRunError
DuplicateResourceError = dpc.errors.DuplicateResourceError

UNIT_FACTORS = dpc.config.UNIT_FACTORS
MAX_FONT_SIZE = dpc.config.MAX_FONT_SIZE
BUILTIN_FONTS = dpc.config.BUILTIN_FONTS


@dataclasses.dataclass
class ValidatedDocument:
	document: Document
	page_width: float
	page_height: float
	content_left: float
	content_top: float
	content_right: float
	content_bottom: float
	fonts: dict[str, FontDeclaration]
	images: dict[str, ImageDeclaration]

	#============================================
	@property
	def content_width(self) -> float:
		return self.content_right - self.content_left

	#============================================
	@property
	def content_height(self) -> float:
		return self.content_bottom - self.content_top

	#============================================
	def to_points(self, value: float) -> float:
		"""
		Convert a length in the document's page unit to points.
		"""
		return dpc.config.to_points(value, self.document.page.unit)


#============================================
def is_finite_number(value) -> bool:
	"""
	Check for a real, finite int or float (bool excluded).

	Args:
		value: Candidate value.

	Returns:
		True when usable as a geometric or style number.
	"""
	if isinstance(value, bool) or not isinstance(value, (int, float)):
		return False
	return math.isfinite(value)


#============================================
def check_page(document: Document) -> None:
	"""
	Check page size, unit and margins.

	Args:
		document: Document to check.
	"""
	page = document.page
	if page.unit not in UNIT_FACTORS:
		raise InvalidGeometryError(f"unknown page unit {page.unit!r}")
	for label, value in (("width", page.width), ("height", page.height)):
		if not is_finite_number(value) or value <= 0:
			raise InvalidGeometryError(f"page {label} must be a positive number, got {value!r}")
	margins = page.margins
	limits = (
		("top", margins.top, page.height),
		("bottom", margins.bottom, page.height),
		("left", margins.left, page.width),
		("right", margins.right, page.width),
	)
	for label, value, dimension in limits:
		if not is_finite_number(value) or value < 0:
			raise InvalidGeometryError(f"{label} margin must be a non-negative number, got {value!r}")
		if value > dimension / 2.0:
			raise InvalidGeometryError(
				f"{label} margin {value} exceeds half of the page dimension {dimension}"
			)


#============================================
def collect_declarations(document: Document) -> tuple[dict, dict]:
	"""
	Index font and image declarations by name.

	Args:
		document: Document to check.

	Returns:
		Tuple of (fonts by name, images by name).
	"""
	fonts: dict[str, FontDeclaration] = {}
	for declaration in document.fonts:
		if not declaration.name:
			raise DocumentError("font declaration without a name")
		if declaration.name in fonts:
			raise DuplicateResourceError(f"font {declaration.name!r} declared twice")
		source = declaration.source
		given = [field for field in (source.path, source.data, source.builtin) if field is not None]
		if len(given) != 1:
			raise DocumentError(f"font {declaration.name!r} needs exactly one of path, data or builtin")
		if source.builtin is not None and source.builtin not in BUILTIN_FONTS:
			raise DocumentError(f"font {declaration.name!r} names unknown built-in font {source.builtin!r}")
		fonts[declaration.name] = declaration

	images: dict[str, ImageDeclaration] = {}
	for declaration in document.images:
		if not declaration.name:
			raise DocumentError("image declaration without a name")
		if declaration.name in images:
			raise DuplicateResourceError(f"image {declaration.name!r} declared twice")
		source = declaration.source
		if (source.path is None) == (source.data is None):
			raise DocumentError(f"image {declaration.name!r} needs exactly one of path or data")
		images[declaration.name] = declaration
	return fonts, images


#============================================
def check_style_values(
	font_size: float,
	color: tuple[float, float, float],
	tracking: float,
	block_index: int | None,
) -> None:
	"""
	Check numeric style ranges.

	Args:
		font_size: Font size in points.
		color: RGB channels.
		tracking: Tracking in 1/1000 em.
		block_index: Block index for error messages.
	"""
	if not is_finite_number(font_size) or not 0 < font_size <= MAX_FONT_SIZE:
		raise InvalidStyleError(f"font size must be in (0, {MAX_FONT_SIZE}], got {font_size!r}", block_index)
	if color is None or len(color) != 3:
		raise InvalidStyleError(f"color must have three channels, got {color!r}", block_index)
	for channel in color:
		if not is_finite_number(channel) or not 0.0 <= channel <= 1.0:
			raise InvalidStyleError(f"color channel {channel!r} outside 0..1", block_index)
	if not is_finite_number(tracking):
		raise InvalidStyleError(f"tracking must be a finite number, got {tracking!r}", block_index)


#============================================
def check_text_block(block: TextBlock, block_index: int, document: Document, fonts: dict) -> None:
	"""
	Check the runs of one text block.
	"""
	if not block.runs:
		raise EmptyTextRunError("text block has no runs", block_index)
	for run in block.runs:
		if not isinstance(run.text, str):
			raise InvalidStyleError(f"run text must be a string, got {type(run.text).__name__}", block_index)
		if not run.text and not run.allow_empty:
			raise EmptyTextRunError("empty text run not marked allow_empty", block_index)
		style = dpc.model.resolve_run_style(run, document.default_style)
		if style.font is None:
			raise InvalidStyleError("run has no font and the document has no default font", block_index)
		if not isinstance(style.font, str):
			raise InvalidStyleError(f"font name must be a string, got {type(style.font).__name__}", block_index)
		if style.font not in fonts:
			raise DanglingResourceReferenceError(style.font, block_index)
		check_style_values(style.font_size, style.color, style.tracking, block_index)
		if run.url is not None and (not isinstance(run.url, str) or not run.url):
			raise InvalidStyleError("link url must be a non-empty string", block_index)


#============================================
def check_image_block(block: ImageBlock, block_index: int, images: dict) -> None:
	"""
	Check an image block's reference, size and transform.
	"""
	if not isinstance(block.image, str):
		raise DocumentError(f"image name must be a string, got {type(block.image).__name__}", block_index)
	if block.image not in images:
		raise DanglingResourceReferenceError(block.image, block_index)
	for label, value in (("width", block.width), ("height", block.height)):
		if value is None:
			continue
		if not is_finite_number(value) or value <= 0:
			raise InvalidGeometryError(f"image {label} must be positive, got {value!r}", block_index)
	transform = block.transform
	if transform is None:
		return
	for label in ("scale_x", "scale_y"):
		value = getattr(transform, label)
		if not is_finite_number(value) or value <= 0:
			raise InvalidGeometryError(f"image {label} must be positive, got {value!r}", block_index)
	if not is_finite_number(transform.rotation):
		raise InvalidGeometryError(f"image rotation must be finite, got {transform.rotation!r}", block_index)
	for label in ("translate_x", "translate_y"):
		value = getattr(transform, label)
		if not is_finite_number(value) or value < 0:
			raise InvalidGeometryError(f"image {label} must be non-negative, got {value!r}", block_index)


#============================================
def check_metadata(document: Document) -> None:
	metadata = document.metadata
	for label in ("creation_date", "modification_date"):
		value = getattr(metadata, label)
		if value is None:
			continue
		if isinstance(value, bool) or not isinstance(value, int) or value < 0:
			raise DocumentError(f"metadata {label} must be a non-negative Unix timestamp, got {value!r}")


#============================================
def validate(document: Document) -> ValidatedDocument:
	"""
	Validate a document without side effects.

	Args:
		document: Caller-owned document, read only.

	Returns:
		ValidatedDocument with page geometry converted to points.
	"""
	check_page(document)
	fonts, images = collect_declarations(document)
	check_metadata(document)
	default_style = document.default_style
	if default_style.font is not None and not isinstance(default_style.font, str):
		raise InvalidStyleError(f"default font name must be a string, got {type(default_style.font).__name__}")
	if default_style.font is not None and default_style.font not in fonts:
		raise DanglingResourceReferenceError(default_style.font)
	check_style_values(default_style.font_size, default_style.color, default_style.tracking, None)

	for block_index, block in enumerate(document.blocks):
		layer = getattr(block, "layer", None)
		if layer is not None and (not isinstance(layer, str) or not layer):
			raise DocumentError(f"layer name must be a non-empty string, got {layer!r}", block_index)
		if isinstance(block, TextBlock):
			check_text_block(block, block_index, document, fonts)
		elif isinstance(block, ImageBlock):
			check_image_block(block, block_index, images)
		else:
			raise DocumentError(f"unsupported block type {type(block).__name__}", block_index)

	page = document.page
	page_width = dpc.config.to_points(page.width, page.unit)
	page_height = dpc.config.to_points(page.height, page.unit)
	return ValidatedDocument(
		document=document,
		page_width=page_width,
		page_height=page_height,
		content_left=dpc.config.to_points(page.margins.left, page.unit),
		content_top=dpc.config.to_points(page.margins.top, page.unit),
		content_right=page_width - dpc.config.to_points(page.margins.right, page.unit),
		content_bottom=page_height - dpc.config.to_points(page.margins.bottom, page.unit),
		fonts=fonts,
		images=images,
	)
