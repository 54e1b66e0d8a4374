"""
Layout engine: turns a validated document into a placement plan.

Coordinates in the plan are in points, in document space: origin at the
top-left corner of the page, y growing downward. The assembler performs
the flip into output space.
"""

# Standard Library
import dataclasses
import unicodedata

# PIP3 modules
import pypdf

# local repo modules
import document_pdf_converter as dpc
import document_pdf_converter.catalog
import document_pdf_converter.config
import document_pdf_converter.errors
import document_pdf_converter.model
import document_pdf_converter.validator


ConversionConfig = dpc.config.ConversionConfig
ResourceCatalog = dpc.catalog.ResourceCatalog
FontId = dpc.catalog.FontId
ImageId = dpc.catalog.ImageId
ValidatedDocument = dpc.validator.ValidatedDocument
TextBlock = dpc.model.TextBlock
ImageBlock = dpc.model.ImageBlock
ImageTransform = dpc.model.ImageTransform
ContentOverflowError = dpc.errors.ContentOverflowError
ElementTooLargeError = dpc.errors.ElementTooLargeError

OVERFLOW_STRICT = dpc.config.OVERFLOW_STRICT
GEOMETRY_EPSILON = dpc.config.GEOMETRY_EPSILON


@dataclasses.dataclass
class GlyphRun:
	font_id: FontId
	font_size: float
	color: tuple[float, float, float]
	x: float
	y: float
	glyphs: list[int]
	text: str
	positions: list[float]
	advances: list[float]
	baseline_offset: float = 0.0
	url: str | None = None
	block_index: int | None = None

	#============================================
	@property
	def width(self) -> float:
		if not self.glyphs:
			return 0.0
		return self.positions[-1] + self.advances[-1]


@dataclasses.dataclass
class PlacedImage:
	image_id: ImageId
	x: float
	y: float
	width: float
	height: float
	matrix: tuple[float, float, float, float, float, float]
	block_index: int | None = None


@dataclasses.dataclass
class PlacedLayer:
	name: str
	elements: list = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class PlacedPage:
	width: float
	height: float
	layers: list[PlacedLayer] = dataclasses.field(default_factory=list)

	#============================================
	def layer(self, name: str) -> PlacedLayer:
		"""
		Get a layer by name, creating it after the existing ones.

		Args:
			name: Layer name.

		Returns:
			PlacedLayer.
		"""
		for layer in self.layers:
			if layer.name == name:
				return layer
		layer = PlacedLayer(name=name)
		self.layers.append(layer)
		return layer


@dataclasses.dataclass
class PlacementPlan:
	pages: list[PlacedPage] = dataclasses.field(default_factory=list)


@dataclasses.dataclass
class LineSegment:
	font_id: FontId
	font_size: float
	color: tuple[float, float, float]
	x_offset: float
	line_height: float
	ascent: float
	url: str | None
	glyphs: list[int] = dataclasses.field(default_factory=list)
	chars: list[str] = dataclasses.field(default_factory=list)
	positions: list[float] = dataclasses.field(default_factory=list)
	advances: list[float] = dataclasses.field(default_factory=list)
	width: float = 0.0


@dataclasses.dataclass
class Line:
	fallback_height: float
	fallback_ascent: float
	segments: list[LineSegment] = dataclasses.field(default_factory=list)
	width: float = 0.0

	#============================================
	@property
	def height(self) -> float:
		if not self.segments:
			return self.fallback_height
		return max(segment.line_height for segment in self.segments)

	#============================================
	@property
	def ascent(self) -> float:
		if not self.segments:
			return self.fallback_ascent
		return max(segment.ascent for segment in self.segments)


class LayoutCursor:
	"""
	Page and cursor bookkeeping while the plan is built.
	"""

	def __init__(self, validated: ValidatedDocument, config: ConversionConfig) -> None:
		self.validated = validated
		self.config = config
		self.plan = PlacementPlan()
		self.page: PlacedPage | None = None
		self.cursor_y = validated.content_top
		self.open_page()

	#============================================
	def open_page(self) -> None:
		self.page = PlacedPage(
			width=self.validated.page_width,
			height=self.validated.page_height,
		)
		self.plan.pages.append(self.page)
		self.cursor_y = self.validated.content_top
		if self.config.verbose:
			print(f"Layout: page {len(self.plan.pages)} opened")

	#============================================
	def make_room(self, height: float, block_index: int) -> None:
		"""
		Ensure the next element fits below the cursor, paginating if allowed.

		Args:
			height: Height the element needs, in points.
			block_index: Block index for error messages.
		"""
		if self.cursor_y + height <= self.validated.content_bottom + GEOMETRY_EPSILON:
			return
		if self.config.overflow_policy == OVERFLOW_STRICT:
			raise ContentOverflowError(block_index, len(self.plan.pages) - 1)
		self.open_page()

	#============================================
	def layer(self, name: str | None) -> PlacedLayer:
		return self.page.layer(name or self.config.default_layer_name)


#============================================
def break_lines(
	block: TextBlock,
	block_index: int,
	validated: ValidatedDocument,
	catalog: ResourceCatalog,
	config: ConversionConfig,
) -> list[Line]:
	"""
	Normalize and greedily wrap the runs of one text block.

	Args:
		block: Text block.
		block_index: Block index for error messages.
		validated: Validated document.
		catalog: Resource catalog.
		config: Conversion config.

	Returns:
		List of Line objects, each holding one segment per run piece.
	"""
	document = validated.document
	content_width = validated.content_width
	lines: list[Line] = []
	current: Line | None = None

	for run in block.runs:
		style = dpc.model.resolve_run_style(run, document.default_style)
		declaration = validated.fonts[style.font]
		font_id = catalog.intern_font(declaration.source)
		metrics = catalog.font_metrics(font_id)
		scale = style.font_size / 1000.0
		line_height = style.font_size * config.line_height_factor
		ascent = metrics.ascent * scale
		if current is None:
			current = Line(fallback_height=line_height, fallback_ascent=ascent)
		segment: LineSegment | None = None
		previous_glyph: int | None = None

		text = unicodedata.normalize(config.normalization_form, run.text)
		for char in text:
			if char == "\n":
				lines.append(current)
				current = Line(fallback_height=line_height, fallback_ascent=ascent)
				segment = None
				previous_glyph = None
				continue
			if unicodedata.category(char) in ("Cc", "Cs"):
				continue
			glyph, found = metrics.glyph_for(char)
			if not found and config.verbose:
				print(f"WARNING: block {block_index}: no glyph for U+{ord(char):04X} in {declaration.name}")
			advance = (metrics.advance(glyph) + style.tracking) * scale
			if advance > content_width + GEOMETRY_EPSILON:
				raise ElementTooLargeError(
					block_index,
					f"glyph U+{ord(char):04X} is {advance:.2f}pt wide, content width is {content_width:.2f}pt",
				)
			kern = 0.0
			if segment is not None and previous_glyph is not None:
				kern = metrics.kerning(previous_glyph, glyph) * scale
			if current.segments and current.width + kern + advance > content_width + GEOMETRY_EPSILON:
				lines.append(current)
				current = Line(fallback_height=line_height, fallback_ascent=ascent)
				segment = None
				kern = 0.0
			if segment is None:
				segment = LineSegment(
					font_id=font_id,
					font_size=style.font_size,
					color=style.color,
					x_offset=current.width,
					line_height=line_height,
					ascent=ascent,
					url=run.url,
				)
				current.segments.append(segment)
			position = segment.width + kern
			segment.glyphs.append(glyph)
			segment.chars.append(char)
			segment.positions.append(position)
			segment.advances.append(advance)
			segment.width = position + advance
			current.width = segment.x_offset + segment.width
			previous_glyph = glyph

	if current is not None:
		lines.append(current)
	return lines


#============================================
def place_text_block(
	cursor: LayoutCursor,
	block: TextBlock,
	block_index: int,
	catalog: ResourceCatalog,
) -> None:
	"""
	Place the wrapped lines of a text block below the cursor.
	"""
	validated = cursor.validated
	lines = break_lines(block, block_index, validated, catalog, cursor.config)
	for line in lines:
		if line.height > validated.content_height + GEOMETRY_EPSILON:
			raise ElementTooLargeError(
				block_index,
				f"line height {line.height:.2f}pt exceeds content height {validated.content_height:.2f}pt",
			)
		cursor.make_room(line.height, block_index)
		layer = cursor.layer(block.layer)
		for segment in line.segments:
			layer.elements.append(
				GlyphRun(
					font_id=segment.font_id,
					font_size=segment.font_size,
					color=segment.color,
					x=validated.content_left + segment.x_offset,
					y=cursor.cursor_y,
					glyphs=segment.glyphs,
					text="".join(segment.chars),
					positions=segment.positions,
					advances=segment.advances,
					baseline_offset=line.ascent,
					url=segment.url,
					block_index=block_index,
				)
			)
		cursor.cursor_y += line.height


#============================================
def image_placement_size(block: ImageBlock, pixel_size: tuple[int, int], validated: ValidatedDocument) -> tuple[float, float]:
	"""
	Resolve the placement size of an image in points.

	Args:
		block: Image block.
		pixel_size: Decoded (width, height) in pixels.
		validated: Validated document, for unit conversion.

	Returns:
		Tuple of (width, height) in points.
	"""
	pixel_width, pixel_height = pixel_size
	if block.width is None and block.height is None:
		return (float(pixel_width), float(pixel_height))
	if block.height is None:
		width = validated.to_points(block.width)
		return (width, width * pixel_height / pixel_width)
	if block.width is None:
		height = validated.to_points(block.height)
		return (height * pixel_width / pixel_height, height)
	return (validated.to_points(block.width), validated.to_points(block.height))


#============================================
def image_local_matrix(width: float, height: float, transform: ImageTransform) -> tuple[tuple, float, float]:
	"""
	Build the unit-square matrix for an image, shifted so its bounding box
	starts at the local origin.

	Args:
		width: Placement width in points.
		height: Placement height in points.
		transform: Scale and rotation to apply.

	Returns:
		Tuple of (ctm, bbox width, bbox height).
	"""
	local = pypdf.Transformation().scale(width * transform.scale_x, height * transform.scale_y)
	if transform.rotation:
		local = local.rotate(transform.rotation)
	corners = [local.apply_on((corner_x, corner_y)) for corner_x, corner_y in ((0, 0), (1, 0), (0, 1), (1, 1))]
	x_values = [corner[0] for corner in corners]
	y_values = [corner[1] for corner in corners]
	local = local.translate(-min(x_values), -min(y_values))
	box_width = max(x_values) - min(x_values)
	box_height = max(y_values) - min(y_values)
	return (tuple(float(value) for value in local.ctm), box_width, box_height)


#============================================
def place_image_block(
	cursor: LayoutCursor,
	block: ImageBlock,
	block_index: int,
	catalog: ResourceCatalog,
) -> None:
	"""
	Place one image below the cursor.
	"""
	validated = cursor.validated
	declaration = validated.images[block.image]
	image_id = catalog.intern_image(declaration.source)
	data = catalog.image_data(image_id)
	width, height = image_placement_size(block, (data.width, data.height), validated)
	transform = block.transform or ImageTransform()
	matrix, box_width, box_height = image_local_matrix(width, height, transform)
	offset_x = validated.to_points(transform.translate_x)
	offset_y = validated.to_points(transform.translate_y)
	if offset_x + box_width > validated.content_width + GEOMETRY_EPSILON:
		raise ElementTooLargeError(
			block_index,
			f"image is {offset_x + box_width:.2f}pt wide, content width is {validated.content_width:.2f}pt",
		)
	flow_height = offset_y + box_height
	if flow_height > validated.content_height + GEOMETRY_EPSILON:
		raise ElementTooLargeError(
			block_index,
			f"image is {flow_height:.2f}pt tall, content height is {validated.content_height:.2f}pt",
		)
	cursor.make_room(flow_height, block_index)
	cursor.layer(block.layer).elements.append(
		PlacedImage(
			image_id=image_id,
			x=validated.content_left + offset_x,
			y=cursor.cursor_y + offset_y,
			width=box_width,
			height=box_height,
			matrix=matrix,
			block_index=block_index,
		)
	)
	cursor.cursor_y += flow_height


#============================================
def layout_document(
	validated: ValidatedDocument,
	catalog: ResourceCatalog,
	config: ConversionConfig,
) -> PlacementPlan:
	"""
	Lay out every block in document order.

	Args:
		validated: Validated document.
		catalog: Resource catalog owned by this conversion.
		config: Conversion config.

	Returns:
		PlacementPlan.
	"""
	cursor = LayoutCursor(validated, config)
	for block_index, block in enumerate(validated.document.blocks):
		if isinstance(block, TextBlock):
			place_text_block(cursor, block, block_index, catalog)
		else:
			place_image_block(cursor, block, block_index, catalog)
	for page in cursor.plan.pages:
		if not page.layers:
			page.layer(config.default_layer_name)
	return cursor.plan
