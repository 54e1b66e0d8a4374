"""
Assembler: emits the PDF object graph for a placement plan.
"""

# Standard Library
import datetime

# PIP3 modules
import pypdf
import pypdf.generic

# local repo modules
import document_pdf_converter as dpc
import document_pdf_converter.catalog
import document_pdf_converter.config
import document_pdf_converter.errors
import document_pdf_converter.layout
import document_pdf_converter.model
import document_pdf_converter.resources
import document_pdf_converter.writer


ArrayObject = pypdf.generic.ArrayObject
DictionaryObject = pypdf.generic.DictionaryObject
IndirectObject = pypdf.generic.IndirectObject
NameObject = pypdf.generic.NameObject
NumberObject = pypdf.generic.NumberObject
TextStringObject = pypdf.generic.TextStringObject

ConversionConfig = dpc.config.ConversionConfig
ResourceCatalog = dpc.catalog.ResourceCatalog
FontEntry = dpc.catalog.FontEntry
ImageEntry = dpc.catalog.ImageEntry
FontMetrics = dpc.resources.FontMetrics
DocumentMetadata = dpc.model.DocumentMetadata
PlacementPlan = dpc.layout.PlacementPlan
PlacedPage = dpc.layout.PlacedPage
GlyphRun = dpc.layout.GlyphRun
PlacedImage = dpc.layout.PlacedImage
PdfObjectWriter = dpc.writer.PdfObjectWriter
InvariantViolation = dpc.errors.InvariantViolation

FONT_KIND_TRUETYPE = dpc.resources.FONT_KIND_TRUETYPE
TOUNICODE_CHUNK_SIZE = dpc.config.TOUNICODE_CHUNK_SIZE
DEFAULT_PRODUCER = dpc.config.DEFAULT_PRODUCER
GEOMETRY_EPSILON = dpc.config.GEOMETRY_EPSILON


#============================================
def format_number(value: float) -> str:
	"""
	Format a number for a content stream with at most four decimals.

	Args:
		value: Number to format.

	Returns:
		Compact decimal string, never "-0".
	"""
	text = f"{value:.4f}".rstrip("0").rstrip(".")
	if text in ("", "-0"):
		return "0"
	return text


#============================================
def format_pdf_date(timestamp: int) -> str:
	"""
	Format a Unix timestamp as a PDF date string in UTC.
	"""
	moment = datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc)
	return moment.strftime("D:%Y%m%d%H%M%S+00'00'")


#============================================
def encode_glyphs(glyphs: list[int], metrics: FontMetrics) -> str:
	"""
	Encode glyph codes as a PDF hex string.

	Args:
		glyphs: Glyph codes.
		metrics: Font metrics, deciding one or two byte codes.

	Returns:
		Hex string including angle brackets.
	"""
	if metrics.kind == FONT_KIND_TRUETYPE:
		return "<" + "".join(f"{glyph:04X}" for glyph in glyphs) + ">"
	return "<" + "".join(f"{glyph:02X}" for glyph in glyphs) + ">"


#============================================
def show_text_operator(run: GlyphRun, metrics: FontMetrics) -> str:
	"""
	Build a Tj or TJ operator reproducing the run's glyph positions.

	Args:
		run: Glyph run.
		metrics: Font metrics of the run's font.

	Returns:
		Show-text operator string.
	"""
	scale = run.font_size / 1000.0
	adjustments: list[float] = [0.0]
	for index in range(1, len(run.glyphs)):
		natural = metrics.advance(run.glyphs[index - 1]) * scale
		gap = run.positions[index] - run.positions[index - 1] - natural
		adjustments.append(gap)
	if all(abs(gap) <= GEOMETRY_EPSILON for gap in adjustments):
		return f"{encode_glyphs(run.glyphs, metrics)} Tj"
	parts: list[str] = []
	for glyph, gap in zip(run.glyphs, adjustments):
		if abs(gap) > GEOMETRY_EPSILON:
			parts.append(format_number(-gap * 1000.0 / run.font_size))
		parts.append(encode_glyphs([glyph], metrics))
	return "[" + " ".join(parts) + "] TJ"


#============================================
def text_operators(run: GlyphRun, metrics: FontMetrics, page_height: float) -> list[str]:
	"""
	Content stream lines for one glyph run.

	Args:
		run: Glyph run in document space.
		metrics: Font metrics.
		page_height: Page height in points.

	Returns:
		List of operator lines.
	"""
	red, green, blue = run.color
	lines = [
		"BT",
		f"/{run.font_id.resource_name} {format_number(run.font_size)} Tf",
		f"{format_number(run.x)} {format_number(page_height - run.y)} Td",
		f"{format_number(red)} {format_number(green)} {format_number(blue)} rg",
	]
	if run.baseline_offset:
		lines.append(f"{format_number(-run.baseline_offset)} Ts")
	lines.append(show_text_operator(run, metrics))
	lines.append("ET")
	return lines


#============================================
def image_operators(image: PlacedImage, page_height: float) -> list[str]:
	"""
	Content stream lines placing an image's unit square.

	Args:
		image: Placed image in document space.
		page_height: Page height in points.

	Returns:
		List of operator lines.
	"""
	transform = pypdf.Transformation(ctm=image.matrix).translate(
		image.x,
		page_height - image.y - image.height,
	)
	matrix = " ".join(format_number(value) for value in transform.ctm)
	return [
		"q",
		f"{matrix} cm",
		f"/{image.image_id.resource_name} Do",
		"Q",
	]


#============================================
def collect_references(plan: PlacementPlan, catalog: ResourceCatalog) -> tuple[set, set]:
	"""
	Gather the resource ids the plan uses, checking each against the catalog.

	Args:
		plan: Placement plan.
		catalog: Resource catalog.

	Returns:
		Tuple of (font ids, image ids).
	"""
	fonts = set()
	images = set()
	for page_index, page in enumerate(plan.pages):
		for layer in page.layers:
			for element in layer.elements:
				if isinstance(element, GlyphRun):
					if not catalog.has_font(element.font_id):
						raise InvariantViolation(
							f"page {page_index} layer {layer.name!r} references unknown font {element.font_id}"
						)
					fonts.add(element.font_id)
				elif isinstance(element, PlacedImage):
					if not catalog.has_image(element.image_id):
						raise InvariantViolation(
							f"page {page_index} layer {layer.name!r} references unknown image {element.image_id}"
						)
					images.add(element.image_id)
				else:
					raise InvariantViolation(f"unknown placed element {type(element).__name__}")
	return fonts, images


#============================================
def build_width_array(metrics: FontMetrics) -> ArrayObject:
	"""
	Build a CIDFont /W array grouping consecutive glyph ids.

	Args:
		metrics: TrueType font metrics.

	Returns:
		ArrayObject of alternating start ids and width arrays.
	"""
	result = ArrayObject()
	widths: list[NumberObject] = []
	start = None
	previous = None
	for glyph in sorted(metrics.glyph_widths):
		width = NumberObject(round(metrics.glyph_widths[glyph]))
		if previous is not None and glyph == previous + 1:
			widths.append(width)
		else:
			if start is not None:
				result.append(NumberObject(start))
				result.append(ArrayObject(widths))
			start = glyph
			widths = [width]
		previous = glyph
	if start is not None:
		result.append(NumberObject(start))
		result.append(ArrayObject(widths))
	return result


#============================================
def build_tounicode_cmap(metrics: FontMetrics) -> bytes:
	"""
	Build a ToUnicode CMap for a glyph-id encoded font.

	bfchar sections hold at most 100 entries and never span a change of
	the glyph id high byte.

	Args:
		metrics: TrueType font metrics.

	Returns:
		CMap program bytes.
	"""
	glyph_to_char: dict[int, str] = {}
	for char, glyph in sorted(metrics.glyph_map.items(), key=lambda item: (item[1], ord(item[0]))):
		if glyph not in glyph_to_char:
			glyph_to_char[glyph] = char

	chunks: list[list[tuple[int, str]]] = []
	current: list[tuple[int, str]] = []
	for glyph in sorted(glyph_to_char):
		if current and (len(current) >= TOUNICODE_CHUNK_SIZE or current[-1][0] >> 8 != glyph >> 8):
			chunks.append(current)
			current = []
		current.append((glyph, glyph_to_char[glyph]))
	if current:
		chunks.append(current)

	lines = [
		"/CIDInit /ProcSet findresource begin",
		"12 dict begin",
		"begincmap",
		"/CIDSystemInfo << /Registry (Adobe) /Ordering (UCS) /Supplement 0 >> def",
		"/CMapName /Adobe-Identity-UCS def",
		"/CMapType 2 def",
		"1 begincodespacerange",
		"<0000> <FFFF>",
		"endcodespacerange",
	]
	for chunk in chunks:
		lines.append(f"{len(chunk)} beginbfchar")
		for glyph, char in chunk:
			lines.append(f"<{glyph:04X}> <{char.encode('utf-16-be').hex().upper()}>")
		lines.append("endbfchar")
	lines.extend([
		"endcmap",
		"CMapName currentdict /CMap defineresource pop",
		"end",
		"end",
	])
	return "\n".join(lines).encode("ascii")


#============================================
def embed_truetype_font(writer: PdfObjectWriter, entry: FontEntry, compress: bool) -> IndirectObject:
	"""
	Embed a TrueType font as a Type0 font with an Identity-H encoding.

	Args:
		writer: Object writer.
		entry: Catalog entry.
		compress: Compress the font program and CMap.

	Returns:
		Reference to the Type0 font dictionary.
	"""
	metrics = entry.metrics
	base_font = NameObject("/" + metrics.base_font)
	font_file = dpc.writer.build_stream(
		metrics.font_data,
		compress,
		{"/Length1": NumberObject(len(metrics.font_data))},
	)
	font_file_ref = writer.allocate(font_file)

	descriptor = DictionaryObject()
	descriptor[NameObject("/Type")] = NameObject("/FontDescriptor")
	descriptor[NameObject("/FontName")] = base_font
	descriptor[NameObject("/Flags")] = NumberObject(metrics.flags)
	descriptor[NameObject("/FontBBox")] = ArrayObject([NumberObject(round(value)) for value in metrics.bbox])
	descriptor[NameObject("/ItalicAngle")] = NumberObject(round(metrics.italic_angle))
	descriptor[NameObject("/Ascent")] = NumberObject(round(metrics.ascent))
	descriptor[NameObject("/Descent")] = NumberObject(round(metrics.descent))
	descriptor[NameObject("/CapHeight")] = NumberObject(round(metrics.cap_height))
	descriptor[NameObject("/StemV")] = NumberObject(round(metrics.stem_v))
	descriptor[NameObject("/FontFile2")] = font_file_ref
	descriptor_ref = writer.allocate(descriptor)

	cid_system_info = DictionaryObject()
	cid_system_info[NameObject("/Registry")] = TextStringObject("Adobe")
	cid_system_info[NameObject("/Ordering")] = TextStringObject("Identity")
	cid_system_info[NameObject("/Supplement")] = NumberObject(0)

	cid_font = DictionaryObject()
	cid_font[NameObject("/Type")] = NameObject("/Font")
	cid_font[NameObject("/Subtype")] = NameObject("/CIDFontType2")
	cid_font[NameObject("/BaseFont")] = base_font
	cid_font[NameObject("/CIDSystemInfo")] = cid_system_info
	cid_font[NameObject("/FontDescriptor")] = descriptor_ref
	cid_font[NameObject("/DW")] = NumberObject(round(metrics.default_width))
	cid_font[NameObject("/W")] = build_width_array(metrics)
	cid_font[NameObject("/CIDToGIDMap")] = NameObject("/Identity")
	cid_font_ref = writer.allocate(cid_font)

	tounicode_ref = writer.allocate(dpc.writer.build_stream(build_tounicode_cmap(metrics), compress))

	font = DictionaryObject()
	font[NameObject("/Type")] = NameObject("/Font")
	font[NameObject("/Subtype")] = NameObject("/Type0")
	font[NameObject("/BaseFont")] = base_font
	font[NameObject("/Encoding")] = NameObject("/Identity-H")
	font[NameObject("/DescendantFonts")] = ArrayObject([cid_font_ref])
	font[NameObject("/ToUnicode")] = tounicode_ref
	return writer.allocate(font)


#============================================
def embed_builtin_font(writer: PdfObjectWriter, entry: FontEntry) -> IndirectObject:
	font = DictionaryObject()
	font[NameObject("/Type")] = NameObject("/Font")
	font[NameObject("/Subtype")] = NameObject("/Type1")
	font[NameObject("/BaseFont")] = NameObject("/" + entry.metrics.base_font)
	font[NameObject("/Encoding")] = NameObject("/WinAnsiEncoding")
	return writer.allocate(font)


#============================================
def embed_image(writer: PdfObjectWriter, entry: ImageEntry) -> IndirectObject:
	"""
	Embed decoded pixels as an image XObject, with a soft mask for alpha.

	Args:
		writer: Object writer.
		entry: Catalog entry.

	Returns:
		Reference to the image XObject.
	"""
	data = entry.data
	entries = {
		"/Type": NameObject("/XObject"),
		"/Subtype": NameObject("/Image"),
		"/Width": NumberObject(data.width),
		"/Height": NumberObject(data.height),
		"/ColorSpace": NameObject("/" + data.color_space),
		"/BitsPerComponent": NumberObject(data.bits_per_component),
	}
	if data.alpha is not None:
		mask_entries = dict(entries)
		mask_entries["/ColorSpace"] = NameObject("/DeviceGray")
		entries["/SMask"] = writer.allocate(dpc.writer.build_stream(data.alpha, True, mask_entries))
	return writer.allocate(dpc.writer.build_stream(data.pixels, True, entries))


#============================================
def build_info(metadata: DocumentMetadata) -> dict[str, str]:
	"""
	Build the document information dictionary entries.

	Args:
		metadata: Document metadata.

	Returns:
		Dict of PDF info keys to string values.
	"""
	info = {"/Producer": DEFAULT_PRODUCER}
	text_fields = (
		("/Title", metadata.title),
		("/Author", metadata.author),
		("/Subject", metadata.subject),
		("/Keywords", metadata.keywords),
		("/Creator", metadata.creator),
		("/Identifier", metadata.identifier),
	)
	for key, value in text_fields:
		if value:
			info[key] = value
	if metadata.creation_date is not None:
		info["/CreationDate"] = format_pdf_date(metadata.creation_date)
	if metadata.modification_date is not None:
		info["/ModDate"] = format_pdf_date(metadata.modification_date)
	return info


#============================================
def link_rect(run: GlyphRun, metrics: FontMetrics, page_height: float) -> tuple[float, float, float, float]:
	"""
	Output-space rectangle covering a glyph run, for a link annotation.
	"""
	baseline = page_height - run.y - run.baseline_offset
	top = page_height - run.y
	bottom = baseline + metrics.descent * run.font_size / 1000.0
	return (
		round(run.x, 4),
		round(min(bottom, baseline), 4),
		round(run.x + run.width, 4),
		round(top, 4),
	)


#============================================
def assemble(
	plan: PlacementPlan,
	catalog: ResourceCatalog,
	metadata: DocumentMetadata,
	config: ConversionConfig,
) -> PdfObjectWriter:
	"""
	Emit pages, layer streams and resources for a placement plan.

	Args:
		plan: Placement plan from the layout engine or the authoring API.
		catalog: Resource catalog the plan's ids come from.
		metadata: Document metadata for the info dictionary.
		config: Conversion config.

	Returns:
		PdfObjectWriter ready to serialize.
	"""
	referenced_fonts, referenced_images = collect_references(plan, catalog)
	writer = PdfObjectWriter(config.pdf_version)

	font_resources = DictionaryObject()
	for entry in catalog.fonts_to_embed(referenced_fonts):
		if entry.metrics.kind == FONT_KIND_TRUETYPE:
			font_ref = embed_truetype_font(writer, entry, config.compress_streams)
		else:
			font_ref = embed_builtin_font(writer, entry)
		catalog.mark_font_embedded(entry.font_id)
		font_resources[NameObject("/" + entry.font_id.resource_name)] = font_ref

	image_resources = DictionaryObject()
	for entry in catalog.images_to_embed(referenced_images):
		image_ref = embed_image(writer, entry)
		catalog.mark_image_embedded(entry.image_id)
		image_resources[NameObject("/" + entry.image_id.resource_name)] = image_ref

	font_resources_ref = writer.allocate(font_resources) if len(font_resources) else None
	image_resources_ref = writer.allocate(image_resources) if len(image_resources) else None

	all_groups: list[IndirectObject] = []
	for page_index, page in enumerate(plan.pages):
		properties = DictionaryObject()
		contents: list[IndirectObject] = []
		links: list[tuple[tuple[float, float, float, float], str]] = []
		for layer_index, layer in enumerate(page.layers):
			group = DictionaryObject()
			group[NameObject("/Type")] = NameObject("/OCG")
			group[NameObject("/Name")] = TextStringObject(layer.name)
			group[NameObject("/Intent")] = ArrayObject([NameObject("/View"), NameObject("/Design")])
			group_ref = writer.allocate(group)
			all_groups.append(group_ref)
			marked_name = f"MC{layer_index}"
			properties[NameObject("/" + marked_name)] = group_ref

			lines = [f"/OC /{marked_name} BDC", "q"]
			for element in layer.elements:
				if isinstance(element, GlyphRun):
					metrics = catalog.font_metrics(element.font_id)
					lines.extend(text_operators(element, metrics, page.height))
					if element.url:
						links.append((link_rect(element, metrics, page.height), element.url))
				else:
					lines.extend(image_operators(element, page.height))
			lines.extend(["Q", "EMC"])
			content = "\n".join(lines).encode("ascii")
			contents.append(writer.allocate(dpc.writer.build_stream(content, config.compress_streams)))

		resources = DictionaryObject()
		resources[NameObject("/ProcSet")] = ArrayObject(
			[NameObject(name) for name in ("/PDF", "/Text", "/ImageB", "/ImageC")]
		)
		if font_resources_ref is not None:
			resources[NameObject("/Font")] = font_resources_ref
		if image_resources_ref is not None:
			resources[NameObject("/XObject")] = image_resources_ref
		resources[NameObject("/Properties")] = properties
		writer.add_page(page.width, page.height, contents, resources)
		for rect, url in links:
			writer.add_link(page_index, rect, url)

	optional_content = DictionaryObject()
	optional_content[NameObject("/OCGs")] = ArrayObject(all_groups)
	default_config = DictionaryObject()
	default_config[NameObject("/Order")] = ArrayObject(all_groups)
	default_config[NameObject("/ON")] = ArrayObject(all_groups)
	default_config[NameObject("/RBGroups")] = ArrayObject()
	optional_content[NameObject("/D")] = default_config
	writer.set_catalog_entry("/OCProperties", optional_content)
	writer.set_catalog_entry("/PageLayout", NameObject("/OneColumn"))
	writer.set_catalog_entry("/PageMode", NameObject("/UseNone"))
	writer.set_info(build_info(metadata))

	if config.verbose:
		print(
			f"Assembler: {len(plan.pages)} pages, {len(font_resources)} fonts, "
			f"{len(image_resources)} images embedded"
		)
	return writer
