"""
Manual authoring API: place content on pages and layers directly.

Positions are top-left anchored in document space, in the builder's unit,
exactly like the placement plan the layout engine produces. Nothing is
wrapped, normalized or paginated here.
"""

# local repo modules
import document_pdf_converter as dpc
import document_pdf_converter.assembler
import document_pdf_converter.catalog
import document_pdf_converter.config
import document_pdf_converter.errors
import document_pdf_converter.layout
import document_pdf_converter.model
import document_pdf_converter.resources
import document_pdf_converter.validator
import document_pdf_converter.writer


ConversionConfig = dpc.config.ConversionConfig
DocumentMetadata = dpc.model.DocumentMetadata
FontSource = dpc.model.FontSource
ImageSource = dpc.model.ImageSource
ImageTransform = dpc.model.ImageTransform
ResourceCatalog = dpc.catalog.ResourceCatalog
FontId = dpc.catalog.FontId
ImageId = dpc.catalog.ImageId
PlacementPlan = dpc.layout.PlacementPlan
PlacedPage = dpc.layout.PlacedPage
PlacedLayer = dpc.layout.PlacedLayer
GlyphRun = dpc.layout.GlyphRun
PlacedImage = dpc.layout.PlacedImage
PdfObjectWriter = dpc.writer.PdfObjectWriter
AuthoringError = dpc.errors.AuthoringError

UNIT_FACTORS = dpc.config.UNIT_FACTORS
DEFAULT_COLOR = dpc.config.DEFAULT_COLOR
OVERFLOW_STRICT = dpc.config.OVERFLOW_STRICT


class DocumentBuilder:
	"""
	Stateful builder over the assembler's primitives.

	Font, image, page and layer ids are allocated sequentially per builder,
	so two builders never share ids or resources.
	"""

	def __init__(
		self,
		unit: str = "mm",
		metadata: DocumentMetadata | None = None,
		config: ConversionConfig | None = None,
		loader=None,
	) -> None:
		if unit not in UNIT_FACTORS:
			raise AuthoringError(f"unknown unit {unit!r}")
		self.unit = unit
		self.metadata = metadata or DocumentMetadata()
		self.config = config or ConversionConfig(overflow_policy=OVERFLOW_STRICT)
		self.catalog = ResourceCatalog(loader or dpc.resources.FileResourceLoader())
		self.plan = PlacementPlan()
		self.finalized = False

	#============================================
	def _points(self, value: float) -> float:
		return dpc.config.to_points(value, self.unit)

	#============================================
	def _check_open(self) -> None:
		if self.finalized:
			raise AuthoringError("document already written")

	#============================================
	def _layer(self, page_index: int, layer_index: int) -> tuple[PlacedPage, PlacedLayer]:
		if not 0 <= page_index < len(self.plan.pages):
			raise AuthoringError(f"unknown page index {page_index}")
		page = self.plan.pages[page_index]
		if not 0 <= layer_index < len(page.layers):
			raise AuthoringError(f"unknown layer index {layer_index} on page {page_index}")
		return page, page.layers[layer_index]

	#============================================
	def add_font(self, source: FontSource | str) -> FontId:
		"""
		Register a font, returning the existing id for a known source.

		Args:
			source: FontSource, or a font file path.

		Returns:
			FontId.
		"""
		self._check_open()
		if isinstance(source, str):
			source = FontSource(path=source)
		return self.catalog.intern_font(source)

	#============================================
	def add_image(self, source: ImageSource | str) -> ImageId:
		self._check_open()
		if isinstance(source, str):
			source = ImageSource(path=source)
		return self.catalog.intern_image(source)

	#============================================
	def add_page_with_layer(self, width: float, height: float, layer_name: str | None = None) -> tuple[int, int]:
		"""
		Append a page holding one layer.

		Args:
			width: Page width in the builder's unit.
			height: Page height in the builder's unit.
			layer_name: Layer name; defaults to the configured layer name.

		Returns:
			Tuple of (page_index, layer_index).
		"""
		self._check_open()
		for label, value in (("width", width), ("height", height)):
			if not dpc.validator.is_finite_number(value) or value <= 0:
				raise AuthoringError(f"page {label} must be positive, got {value!r}")
		page = PlacedPage(width=self._points(width), height=self._points(height))
		page.layers.append(PlacedLayer(name=layer_name or self.config.default_layer_name))
		self.plan.pages.append(page)
		return (len(self.plan.pages) - 1, 0)

	#============================================
	def add_layer(self, page_index: int, name: str) -> int:
		"""
		Add a named layer to an existing page.

		Returns:
			Layer index on that page.
		"""
		self._check_open()
		page, _layer = self._layer(page_index, 0)
		if not name or any(layer.name == name for layer in page.layers):
			raise AuthoringError(f"layer name {name!r} is empty or already used on page {page_index}")
		page.layers.append(PlacedLayer(name=name))
		return len(page.layers) - 1

	#============================================
	def write_text_to_layer_in_page(
		self,
		page_index: int,
		layer_index: int,
		text: str,
		font_id: FontId,
		font_size: float,
		position: tuple[float, float],
		color: tuple[float, float, float] = DEFAULT_COLOR,
		url: str | None = None,
	) -> None:
		"""
		Write one line of text with its baseline at the given position.

		Args:
			page_index: Target page.
			layer_index: Target layer on that page.
			text: Text, used as given.
			font_id: Font from add_font.
			font_size: Font size in points.
			position: (x, y) of the baseline start, top-left origin.
			color: RGB channels in 0..1.
			url: Optional link target.
		"""
		self._check_open()
		_page, layer = self._layer(page_index, layer_index)
		if not self.catalog.has_font(font_id):
			raise AuthoringError(f"unknown font id {font_id}")
		dpc.validator.check_style_values(font_size, color, 0.0, None)
		metrics = self.catalog.font_metrics(font_id)
		scale = font_size / 1000.0
		glyphs: list[int] = []
		positions: list[float] = []
		advances: list[float] = []
		cursor_x = 0.0
		for char in text:
			glyph, found = metrics.glyph_for(char)
			if not found and self.config.verbose:
				print(f"WARNING: no glyph for U+{ord(char):04X} in {metrics.base_font}")
			if glyphs:
				cursor_x += metrics.kerning(glyphs[-1], glyph) * scale
			advance = metrics.advance(glyph) * scale
			glyphs.append(glyph)
			positions.append(cursor_x)
			advances.append(advance)
			cursor_x += advance
		if not glyphs:
			return
		x, y = position
		layer.elements.append(
			GlyphRun(
				font_id=font_id,
				font_size=font_size,
				color=tuple(color),
				x=self._points(x),
				y=self._points(y),
				glyphs=glyphs,
				text=text,
				positions=positions,
				advances=advances,
				url=url,
			)
		)

	#============================================
	def place_image_in_layer(
		self,
		page_index: int,
		layer_index: int,
		image_id: ImageId,
		position: tuple[float, float],
		size: tuple[float, float] | None = None,
		rotation: float = 0.0,
	) -> None:
		"""
		Place an image with its bounding box's top-left corner at position.

		Args:
			page_index: Target page.
			layer_index: Target layer on that page.
			image_id: Image from add_image.
			position: (x, y) in the builder's unit, top-left origin.
			size: (width, height) in the builder's unit; defaults to 1 px = 1 pt.
			rotation: Counter-clockwise rotation in degrees.
		"""
		self._check_open()
		_page, layer = self._layer(page_index, layer_index)
		if not self.catalog.has_image(image_id):
			raise AuthoringError(f"unknown image id {image_id}")
		if size is not None:
			if len(size) != 2:
				raise AuthoringError(f"image size must be (width, height), got {size!r}")
			for label, value in zip(("width", "height"), size):
				if not dpc.validator.is_finite_number(value) or value <= 0:
					raise AuthoringError(f"image {label} must be positive, got {value!r}")
		if not dpc.validator.is_finite_number(rotation):
			raise AuthoringError(f"image rotation must be finite, got {rotation!r}")
		data = self.catalog.image_data(image_id)
		if size is None:
			width, height = float(data.width), float(data.height)
		else:
			width, height = self._points(size[0]), self._points(size[1])
		matrix, box_width, box_height = dpc.layout.image_local_matrix(
			width,
			height,
			ImageTransform(rotation=rotation),
		)
		x, y = position
		layer.elements.append(
			PlacedImage(
				image_id=image_id,
				x=self._points(x),
				y=self._points(y),
				width=box_width,
				height=box_height,
				matrix=matrix,
			)
		)

	#============================================
	def write_all(self) -> PdfObjectWriter:
		"""
		Finalize the document; resources used by any page are embedded once.

		Returns:
			PdfObjectWriter.
		"""
		self._check_open()
		if not self.plan.pages:
			raise AuthoringError("document has no pages")
		self.finalized = True
		return dpc.assembler.assemble(self.plan, self.catalog, self.metadata, self.config)

	#============================================
	def save(self, path) -> None:
		self.write_all().save(path)
