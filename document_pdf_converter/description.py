"""
JSON document descriptions.

Example:
	{
	  "metadata": {"title": "Report", "author": "Ops", "creation_date": 1700000000},
	  "page": {"width": 210, "height": 297, "unit": "mm", "margins": 15},
	  "fonts": [{"name": "body", "builtin": "Helvetica"}],
	  "default_style": {"font": "body", "font_size": 11},
	  "blocks": [{"type": "text", "runs": [{"text": "Hello"}]}]
	}
"""

# Standard Library
import json
import os
import pathlib

# local repo modules
import document_pdf_converter as dpc
import document_pdf_converter.config
import document_pdf_converter.errors
import document_pdf_converter.model


Document = dpc.model.Document
DocumentMetadata = dpc.model.DocumentMetadata
PageConfig = dpc.model.PageConfig
Margins = dpc.model.Margins
TextStyle = dpc.model.TextStyle
TextRun = dpc.model.TextRun
TextBlock = dpc.model.TextBlock
ImageBlock = dpc.model.ImageBlock
ImageTransform = dpc.model.ImageTransform
FontDeclaration = dpc.model.FontDeclaration
ImageDeclaration = dpc.model.ImageDeclaration
FontSource = dpc.model.FontSource
ImageSource = dpc.model.ImageSource
DescriptionError = dpc.errors.DescriptionError

DEFAULT_FONT_SIZE = dpc.config.DEFAULT_FONT_SIZE
DEFAULT_COLOR = dpc.config.DEFAULT_COLOR


#============================================
def expect_type(value, expected, path: str):
	"""
	Check a JSON value's type.

	Args:
		value: JSON value.
		expected: Type or tuple of types.
		path: Location used in the error message.

	Returns:
		The value unchanged.
	"""
	if isinstance(value, bool) and expected in (int, float, (int, float)):
		raise DescriptionError(f"{path}: expected a number, got a boolean")
	if not isinstance(value, expected):
		kinds = expected if isinstance(expected, tuple) else (expected,)
		names = " or ".join(kind.__name__ for kind in kinds)
		raise DescriptionError(f"{path}: expected {names}, got {type(value).__name__}")
	return value


#============================================
def parse_color(value, path: str) -> tuple[float, float, float] | None:
	"""
	Parse a color as [r, g, b] in 0..1 or a "#RRGGBB" string.

	Args:
		value: JSON value or None.
		path: Location used in error messages.

	Returns:
		RGB tuple or None.
	"""
	if value is None:
		return None
	if isinstance(value, str):
		if not value.startswith("#") or len(value) != 7:
			raise DescriptionError(f"{path}: color strings look like '#AABBCC'")
		try:
			red = int(value[1:3], 16) / 255.0
			green = int(value[3:5], 16) / 255.0
			blue = int(value[5:7], 16) / 255.0
		except ValueError as error:
			raise DescriptionError(f"{path}: {error}") from error
		return (red, green, blue)
	expect_type(value, list, path)
	if len(value) != 3:
		raise DescriptionError(f"{path}: color needs three channels")
	return tuple(float(expect_type(channel, (int, float), path)) for channel in value)


#============================================
def resolve_path(value: str, base_dir: str | None) -> str:
	if base_dir is None or os.path.isabs(value):
		return value
	return os.path.join(base_dir, value)


#============================================
def parse_margins(value, path: str) -> Margins:
	if value is None:
		return Margins()
	if isinstance(value, (int, float)) and not isinstance(value, bool):
		return Margins.uniform(float(value))
	expect_type(value, dict, path)
	return Margins(
		top=float(expect_type(value.get("top", 0.0), (int, float), f"{path}.top")),
		right=float(expect_type(value.get("right", 0.0), (int, float), f"{path}.right")),
		bottom=float(expect_type(value.get("bottom", 0.0), (int, float), f"{path}.bottom")),
		left=float(expect_type(value.get("left", 0.0), (int, float), f"{path}.left")),
	)


#============================================
def parse_page(value) -> PageConfig:
	"""
	Parse the page section; "size" may name a preset such as "A4".
	"""
	expect_type(value, dict, "page")
	unit = expect_type(value.get("unit", "pt"), str, "page.unit")
	if "size" in value:
		preset = expect_type(value["size"], str, "page.size")
		try:
			width, height = dpc.config.page_size_preset(preset)
		except dpc.errors.ConfigurationError as error:
			raise DescriptionError(f"page.size: {error}") from error
		factor = dpc.config.UNIT_FACTORS.get(unit, 1.0)
		width, height = width / factor, height / factor
	else:
		if "width" not in value or "height" not in value:
			raise DescriptionError("page: width and height are required without a size preset")
		width = expect_type(value["width"], (int, float), "page.width")
		height = expect_type(value["height"], (int, float), "page.height")
	return PageConfig(
		width=float(width),
		height=float(height),
		unit=unit,
		margins=parse_margins(value.get("margins"), "page.margins"),
	)


#============================================
def parse_run(value, path: str) -> TextRun:
	if isinstance(value, str):
		return TextRun(text=value)
	expect_type(value, dict, path)
	font_size = value.get("font_size")
	tracking = value.get("tracking")
	return TextRun(
		text=expect_type(value.get("text", ""), str, f"{path}.text"),
		font=expect_type(value.get("font"), (str, type(None)), f"{path}.font"),
		font_size=None if font_size is None else float(expect_type(font_size, (int, float), f"{path}.font_size")),
		color=parse_color(value.get("color"), f"{path}.color"),
		tracking=None if tracking is None else float(expect_type(tracking, (int, float), f"{path}.tracking")),
		allow_empty=bool(value.get("allow_empty", False)),
		url=expect_type(value.get("url"), (str, type(None)), f"{path}.url"),
	)


#============================================
def parse_transform(value, path: str) -> ImageTransform | None:
	if value is None:
		return None
	expect_type(value, dict, path)
	scale = value.get("scale", [1.0, 1.0])
	if isinstance(scale, (int, float)) and not isinstance(scale, bool):
		scale = [scale, scale]
	translate = value.get("translate", [0.0, 0.0])
	expect_type(scale, list, f"{path}.scale")
	expect_type(translate, list, f"{path}.translate")
	if len(scale) != 2 or len(translate) != 2:
		raise DescriptionError(f"{path}: scale and translate take two values")
	return ImageTransform(
		scale_x=float(expect_type(scale[0], (int, float), f"{path}.scale")),
		scale_y=float(expect_type(scale[1], (int, float), f"{path}.scale")),
		rotation=float(expect_type(value.get("rotation", 0.0), (int, float), f"{path}.rotation")),
		translate_x=float(expect_type(translate[0], (int, float), f"{path}.translate")),
		translate_y=float(expect_type(translate[1], (int, float), f"{path}.translate")),
	)


#============================================
def parse_block(value, index: int):
	"""
	Parse one content block by its "type" tag.
	"""
	path = f"blocks[{index}]"
	expect_type(value, dict, path)
	block_type = value.get("type")
	layer = expect_type(value.get("layer"), (str, type(None)), f"{path}.layer")
	if block_type == "text":
		runs = expect_type(value.get("runs", []), list, f"{path}.runs")
		return TextBlock(
			runs=[parse_run(run, f"{path}.runs[{run_index}]") for run_index, run in enumerate(runs)],
			layer=layer,
		)
	if block_type == "image":
		width = value.get("width")
		height = value.get("height")
		return ImageBlock(
			image=expect_type(value.get("image"), str, f"{path}.image"),
			width=None if width is None else float(expect_type(width, (int, float), f"{path}.width")),
			height=None if height is None else float(expect_type(height, (int, float), f"{path}.height")),
			transform=parse_transform(value.get("transform"), f"{path}.transform"),
			layer=layer,
		)
	raise DescriptionError(f"{path}.type: expected 'text' or 'image', got {block_type!r}")


#============================================
def parse_font(value, index: int, base_dir: str | None) -> FontDeclaration:
	path = f"fonts[{index}]"
	expect_type(value, dict, path)
	name = expect_type(value.get("name"), str, f"{path}.name")
	if "builtin" in value:
		source = FontSource(builtin=expect_type(value["builtin"], str, f"{path}.builtin"))
	elif "path" in value:
		source = FontSource(path=resolve_path(expect_type(value["path"], str, f"{path}.path"), base_dir))
	else:
		raise DescriptionError(f"{path}: needs 'path' or 'builtin'")
	return FontDeclaration(name=name, source=source)


#============================================
def parse_image(value, index: int, base_dir: str | None) -> ImageDeclaration:
	path = f"images[{index}]"
	expect_type(value, dict, path)
	name = expect_type(value.get("name"), str, f"{path}.name")
	image_path = expect_type(value.get("path"), str, f"{path}.path")
	return ImageDeclaration(name=name, source=ImageSource(path=resolve_path(image_path, base_dir)))


#============================================
def parse_metadata(value) -> DocumentMetadata:
	if value is None:
		return DocumentMetadata()
	expect_type(value, dict, "metadata")
	fields = {}
	for key in ("title", "author", "subject", "keywords", "creator", "identifier"):
		fields[key] = expect_type(value.get(key, ""), str, f"metadata.{key}")
	for key in ("creation_date", "modification_date"):
		stamp = value.get(key)
		fields[key] = None if stamp is None else expect_type(stamp, int, f"metadata.{key}")
	return DocumentMetadata(**fields)


#============================================
def parse_style(value) -> TextStyle:
	if value is None:
		return TextStyle()
	expect_type(value, dict, "default_style")
	return TextStyle(
		font=expect_type(value.get("font"), (str, type(None)), "default_style.font"),
		font_size=float(expect_type(value.get("font_size", DEFAULT_FONT_SIZE), (int, float), "default_style.font_size")),
		color=parse_color(value.get("color"), "default_style.color") or DEFAULT_COLOR,
		tracking=float(expect_type(value.get("tracking", 0.0), (int, float), "default_style.tracking")),
	)


#============================================
def document_from_dict(data: dict, base_dir: str | None = None) -> Document:
	"""
	Build a Document from a parsed JSON object.

	Args:
		data: Parsed JSON object.
		base_dir: Directory that relative resource paths resolve against.

	Returns:
		Document.
	"""
	expect_type(data, dict, "document")
	if "page" not in data:
		raise DescriptionError("document: 'page' is required")
	fonts = expect_type(data.get("fonts", []), list, "fonts")
	images = expect_type(data.get("images", []), list, "images")
	blocks = expect_type(data.get("blocks", []), list, "blocks")
	return Document(
		page=parse_page(data["page"]),
		blocks=[parse_block(block, index) for index, block in enumerate(blocks)],
		fonts=[parse_font(font, index, base_dir) for index, font in enumerate(fonts)],
		images=[parse_image(image, index, base_dir) for index, image in enumerate(images)],
		default_style=parse_style(data.get("default_style")),
		metadata=parse_metadata(data.get("metadata")),
	)


#============================================
def load_document(path: pathlib.Path) -> Document:
	"""
	Read a JSON description file.

	Args:
		path: Description path.

	Returns:
		Document with resource paths resolved next to the file.
	"""
	try:
		with open(path, "r", encoding="utf-8") as handle:
			data = json.load(handle)
	except json.JSONDecodeError as error:
		raise DescriptionError(f"{path}: invalid JSON: {error}") from error
	except OSError as error:
		raise DescriptionError(f"{path}: {error}") from error
	return document_from_dict(data, base_dir=os.path.dirname(os.path.abspath(path)))
