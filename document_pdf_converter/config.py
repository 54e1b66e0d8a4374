"""
Shared configuration and constants.
"""

# Standard Library
import dataclasses

# PIP3 modules
import reportlab.lib.pagesizes

# local repo modules
import document_pdf_converter as dpc
import document_pdf_converter.errors


ConfigurationError = dpc.errors.ConfigurationError

POINTS_PER_INCH = 72.0
MILLIMETERS_PER_INCH = 25.4
POINTS_PER_MILLIMETER = POINTS_PER_INCH / MILLIMETERS_PER_INCH
UNIT_FACTORS = {
	"pt": 1.0,
	"mm": POINTS_PER_MILLIMETER,
	"in": POINTS_PER_INCH,
}

OVERFLOW_FLOW = "flow"
OVERFLOW_STRICT = "strict"
OVERFLOW_POLICIES = (OVERFLOW_FLOW, OVERFLOW_STRICT)
NORMALIZATION_FORMS = ("NFC", "NFD", "NFKC", "NFKD")

DEFAULT_FONT_SIZE = 12.0
DEFAULT_LINE_HEIGHT_FACTOR = 1.2
DEFAULT_LAYER_NAME = "Layer0"
DEFAULT_PDF_VERSION = "1.5"
DEFAULT_PRODUCER = "document-pdf-converter"
DEFAULT_COLOR = (0.0, 0.0, 0.0)
MAX_FONT_SIZE = 1000.0
GEOMETRY_EPSILON = 1e-9
TOUNICODE_CHUNK_SIZE = 100
BUILTIN_FONTS = (
	"Courier",
	"Courier-Bold",
	"Courier-Oblique",
	"Courier-BoldOblique",
	"Helvetica",
	"Helvetica-Bold",
	"Helvetica-Oblique",
	"Helvetica-BoldOblique",
	"Times-Roman",
	"Times-Bold",
	"Times-Italic",
	"Times-BoldItalic",
)
MISSING_BUILTIN_CHAR = "?"


@dataclasses.dataclass
class ConversionConfig:
	overflow_policy: str
	line_height_factor: float = DEFAULT_LINE_HEIGHT_FACTOR
	normalization_form: str = "NFC"
	default_layer_name: str = DEFAULT_LAYER_NAME
	compress_streams: bool = True
	pdf_version: str = DEFAULT_PDF_VERSION
	verbose: bool = False


#============================================
def validate_config(config: ConversionConfig) -> None:
	"""
	Reject configuration values the pipeline cannot honor.

	Args:
		config: Conversion configuration.
	"""
	if config.overflow_policy not in OVERFLOW_POLICIES:
		raise ConfigurationError(
			f"overflow_policy must be one of {OVERFLOW_POLICIES}, got {config.overflow_policy!r}"
		)
	if config.normalization_form not in NORMALIZATION_FORMS:
		raise ConfigurationError(
			f"normalization_form must be one of {NORMALIZATION_FORMS}, got {config.normalization_form!r}"
		)
	if not config.line_height_factor > 0.0:
		raise ConfigurationError("line_height_factor must be positive")
	if not config.default_layer_name:
		raise ConfigurationError("default_layer_name must not be empty")


#============================================
def inches_to_points(value: float) -> float:
	"""
	Convert inches to points.

	Args:
		value: Inches value.

	Returns:
		Points value.
	"""
	return value * POINTS_PER_INCH


#============================================
def millimeters_to_points(value: float) -> float:
	"""
	Convert millimeters to points.
	"""
	return value * POINTS_PER_MILLIMETER


#============================================
def to_points(value: float, unit: str) -> float:
	"""
	Convert a length in a page unit to points.

	Args:
		value: Length value.
		unit: One of "pt", "mm", "in".

	Returns:
		Points value.
	"""
	if unit == "in":
		return inches_to_points(value)
	if unit == "mm":
		return millimeters_to_points(value)
	if unit not in UNIT_FACTORS:
		raise ConfigurationError(f"unknown unit {unit!r}")
	return value * UNIT_FACTORS[unit]


#============================================
def page_size_preset(name: str) -> tuple[float, float]:
	"""
	Look up a named page size in points.

	Args:
		name: Preset name such as "A4" or "letter", case-insensitive.

	Returns:
		Tuple of (width, height) in points.
	"""
	presets = {
		"a3": reportlab.lib.pagesizes.A3,
		"a4": reportlab.lib.pagesizes.A4,
		"a5": reportlab.lib.pagesizes.A5,
		"letter": reportlab.lib.pagesizes.letter,
		"legal": reportlab.lib.pagesizes.legal,
	}
	key = name.strip().lower()
	if key not in presets:
		raise ConfigurationError(f"unknown page size preset {name!r}")
	width, height = presets[key]
	return (float(width), float(height))
