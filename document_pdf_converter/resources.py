"""
Font and image loading for the resource catalog.

The loader is the only place that touches the file system during a
conversion. Fonts are parsed with reportlab and images decoded with
Pillow; everything downstream works from FontMetrics and ImageData.
"""

# Standard Library
import dataclasses
import io
import os
import struct
import unicodedata

# PIP3 modules
import fontTools.ttLib
import PIL.Image
import reportlab.pdfbase.pdfmetrics
import reportlab.pdfbase.ttfonts

# local repo modules
import document_pdf_converter as dpc
import document_pdf_converter.config
import document_pdf_converter.errors
import document_pdf_converter.model


FontSource = dpc.model.FontSource
ImageSource = dpc.model.ImageSource
LoadError = dpc.errors.LoadError

BUILTIN_FONTS = dpc.config.BUILTIN_FONTS
MISSING_BUILTIN_CHAR = dpc.config.MISSING_BUILTIN_CHAR

FONT_KIND_TRUETYPE = "truetype"
FONT_KIND_BUILTIN = "builtin"


@dataclasses.dataclass
class FontMetrics:
	key: str
	kind: str
	base_font: str
	units_per_em: int
	ascent: float
	descent: float
	cap_height: float
	italic_angle: float
	flags: int
	stem_v: float
	bbox: tuple[float, float, float, float]
	glyph_map: dict[str, int]
	glyph_widths: dict[int, float]
	default_width: float
	missing_glyph: int
	kerning_pairs: dict[tuple[int, int], float] = dataclasses.field(default_factory=dict)
	font_data: bytes | None = None

	#============================================
	def glyph_for(self, char: str) -> tuple[int, bool]:
		"""
		Map a character to a glyph code.

		Args:
			char: Single character.

		Returns:
			Tuple of (glyph code, found flag).
		"""
		glyph = self.glyph_map.get(char)
		if glyph is None:
			return (self.missing_glyph, False)
		return (glyph, True)

	#============================================
	def advance(self, glyph: int) -> float:
		"""
		Advance width of a glyph in 1/1000 em.
		"""
		return self.glyph_widths.get(glyph, self.default_width)

	#============================================
	def kerning(self, left: int, right: int) -> float:
		return self.kerning_pairs.get((left, right), 0.0)


@dataclasses.dataclass
class ImageData:
	key: str
	width: int
	height: int
	color_space: str
	bits_per_component: int
	pixels: bytes
	alpha: bytes | None = None


#============================================
def sanitize_font_name(value, fallback: str) -> str:
	"""
	Reduce a font's PostScript name to characters safe in a PDF name.

	Args:
		value: Name as str or bytes.
		fallback: Name used when nothing survives.

	Returns:
		Sanitized name.
	"""
	if isinstance(value, bytes):
		value = value.decode("latin-1", "ignore")
	result = "".join(char for char in str(value or "") if char.isascii() and (char.isalnum() or char in "-_"))
	if not result:
		return fallback
	return result


#============================================
def read_kerning_pairs(data: bytes, units_per_em: int) -> dict[tuple[int, int], float]:
	"""
	Read pair kerning from a TrueType kern table.

	Args:
		data: Raw font file bytes.
		units_per_em: Design units per em.

	Returns:
		Dict of (left glyph id, right glyph id) to adjustment in 1/1000 em.
	"""
	pairs: dict[tuple[int, int], float] = {}
	font = fontTools.ttLib.TTFont(io.BytesIO(data), lazy=True)
	try:
		if "kern" not in font:
			return pairs
		scale = 1000.0 / units_per_em
		for subtable in font["kern"].kernTables:
			# only format 0 subtables carry a pair table
			kern_table = getattr(subtable, "kernTable", None)
			if not kern_table:
				continue
			for (left, right), value in sorted(kern_table.items()):
				key = (font.getGlyphID(left), font.getGlyphID(right))
				pairs.setdefault(key, value * scale)
	finally:
		font.close()
	return pairs


#============================================
def parse_truetype(key: str, data: bytes) -> FontMetrics:
	"""
	Parse TrueType font bytes into metrics.

	Args:
		key: Resource key.
		data: Raw font file bytes.

	Returns:
		FontMetrics with glyph ids as glyph codes.
	"""
	face = reportlab.pdfbase.ttfonts.TTFontFile(io.BytesIO(data))
	glyph_map: dict[str, int] = {}
	glyph_widths: dict[int, float] = {}
	for codepoint in sorted(face.charToGlyph):
		glyph = face.charToGlyph[codepoint]
		glyph_map[chr(codepoint)] = glyph
		if glyph not in glyph_widths:
			glyph_widths[glyph] = float(face.charWidths.get(codepoint, face.defaultWidth))
	glyph_widths.setdefault(0, float(face.defaultWidth))
	return FontMetrics(
		key=key,
		kind=FONT_KIND_TRUETYPE,
		base_font=sanitize_font_name(face.name, "TrueTypeFont"),
		units_per_em=int(face.unitsPerEm),
		ascent=float(face.ascent),
		descent=float(face.descent),
		cap_height=float(face.capHeight),
		italic_angle=float(face.italicAngle),
		flags=int(face.flags),
		stem_v=float(face.stemV),
		bbox=tuple(float(value) for value in face.bbox),
		glyph_map=glyph_map,
		glyph_widths=glyph_widths,
		default_width=float(face.defaultWidth),
		missing_glyph=0,
		kerning_pairs=read_kerning_pairs(data, int(face.unitsPerEm)),
		font_data=data,
	)


#============================================
def builtin_metrics(key: str, name: str) -> FontMetrics:
	"""
	Build metrics for a standard Type 1 font using WinAnsi codes.

	Args:
		key: Resource key.
		name: Standard font name.

	Returns:
		FontMetrics with single-byte glyph codes.
	"""
	glyph_map: dict[str, int] = {}
	glyph_widths: dict[int, float] = {}
	for code in range(32, 256):
		try:
			char = bytes([code]).decode("cp1252")
		except UnicodeDecodeError:
			continue
		if unicodedata.category(char) == "Cc":
			continue
		glyph_map[char] = code
		glyph_widths[code] = reportlab.pdfbase.pdfmetrics.stringWidth(char, name, 1000)
	missing_glyph = glyph_map[MISSING_BUILTIN_CHAR]
	ascent = float(reportlab.pdfbase.pdfmetrics.getAscent(name))
	descent = float(reportlab.pdfbase.pdfmetrics.getDescent(name))
	return FontMetrics(
		key=key,
		kind=FONT_KIND_BUILTIN,
		base_font=name,
		units_per_em=1000,
		ascent=ascent,
		descent=descent,
		cap_height=ascent,
		italic_angle=0.0,
		flags=32,
		stem_v=80.0,
		bbox=(0.0, descent, 1000.0, ascent),
		glyph_map=glyph_map,
		glyph_widths=glyph_widths,
		default_width=glyph_widths[missing_glyph],
		missing_glyph=missing_glyph,
	)


#============================================
def decode_image(key: str, data: bytes) -> ImageData:
	"""
	Decode image bytes into raw 8-bit pixel rows.

	Args:
		key: Resource key.
		data: Encoded image bytes.

	Returns:
		ImageData in DeviceRGB or DeviceGray, with an alpha plane when present.
	"""
	image = PIL.Image.open(io.BytesIO(data))
	image.load()
	has_alpha = image.mode in ("RGBA", "LA", "PA") or (
		image.mode == "P" and "transparency" in image.info
	)
	alpha = None
	if has_alpha:
		rgba = image.convert("RGBA")
		alpha_channel = rgba.getchannel("A")
		if alpha_channel.getextrema() != (255, 255):
			alpha = alpha_channel.tobytes()
		converted = rgba.convert("RGB")
		color_space = "DeviceRGB"
	elif image.mode in ("1", "L"):
		converted = image.convert("L")
		color_space = "DeviceGray"
	else:
		converted = image.convert("RGB")
		color_space = "DeviceRGB"
	return ImageData(
		key=key,
		width=converted.width,
		height=converted.height,
		color_space=color_space,
		bits_per_component=8,
		pixels=converted.tobytes(),
		alpha=alpha,
	)


class FileResourceLoader:
	"""
	Default loader reading fonts and images from paths or in-memory bytes.

	Relative paths resolve against base_dir. Any collaborator with the same
	load_font/load_image methods can stand in for it.
	"""

	def __init__(self, base_dir: str | None = None) -> None:
		self.base_dir = base_dir

	#============================================
	def _read_bytes(self, path: str) -> bytes:
		if self.base_dir is not None and not os.path.isabs(path):
			path = os.path.join(self.base_dir, path)
		with open(path, "rb") as handle:
			return handle.read()

	#============================================
	def load_font(self, source: FontSource) -> FontMetrics:
		"""
		Load font metrics for one source.

		Args:
			source: Font source.

		Returns:
			FontMetrics.
		"""
		key = source.key()
		if source.builtin is not None:
			if source.builtin not in BUILTIN_FONTS:
				raise LoadError(f"{key}: not a supported built-in font")
			return builtin_metrics(key, source.builtin)
		try:
			data = source.data if source.data is not None else self._read_bytes(source.path)
			return parse_truetype(key, data)
		except (
			OSError,
			ValueError,
			struct.error,
			reportlab.pdfbase.ttfonts.TTFError,
			fontTools.ttLib.TTLibError,
		) as error:
			raise LoadError(f"{key}: {error}") from error

	#============================================
	def load_image(self, source: ImageSource) -> ImageData:
		"""
		Load and decode one image source.

		Args:
			source: Image source.

		Returns:
			ImageData.
		"""
		key = source.key()
		try:
			data = source.data if source.data is not None else self._read_bytes(source.path)
			return decode_image(key, data)
		except (OSError, ValueError, PIL.Image.DecompressionBombError) as error:
			raise LoadError(f"{key}: {error}") from error
