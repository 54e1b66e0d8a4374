"""
In-memory document model.
"""

# Standard Library
import dataclasses
import hashlib
import os

# local repo modules
import document_pdf_converter as dpc
import document_pdf_converter.config


DEFAULT_FONT_SIZE = dpc.config.DEFAULT_FONT_SIZE
DEFAULT_COLOR = dpc.config.DEFAULT_COLOR


@dataclasses.dataclass
class FontSource:
	path: str | None = None
	data: bytes | None = None
	builtin: str | None = None

	#============================================
	def key(self) -> str:
		"""
		Stable identity used to deduplicate fonts.

		Returns:
			Resource key string.
		"""
		if self.builtin is not None:
			return f"builtin:{self.builtin}"
		if self.data is not None:
			return f"sha256:{hashlib.sha256(self.data).hexdigest()}"
		return f"file:{os.path.normpath(self.path or '')}"


@dataclasses.dataclass
class ImageSource:
	path: str | None = None
	data: bytes | None = None

	#============================================
	def key(self) -> str:
		"""
		Stable identity used to deduplicate images.

		Returns:
			Resource key string.
		"""
		if self.data is not None:
			return f"sha256:{hashlib.sha256(self.data).hexdigest()}"
		return f"file:{os.path.normpath(self.path or '')}"


@dataclasses.dataclass
class FontDeclaration:
	name: str
	source: FontSource


@dataclasses.dataclass
class ImageDeclaration:
	name: str
	source: ImageSource


@dataclasses.dataclass
class DocumentMetadata:
	title: str = ""
	author: str = ""
	subject: str = ""
	keywords: str = ""
	creator: str = ""
	identifier: str = ""
	creation_date: int | None = None
	modification_date: int | None = None


@dataclasses.dataclass
class Margins:
	top: float = 0.0
	right: float = 0.0
	bottom: float = 0.0
	left: float = 0.0

	#============================================
	@classmethod
	def uniform(cls, value: float) -> "Margins":
		return cls(top=value, right=value, bottom=value, left=value)


@dataclasses.dataclass
class PageConfig:
	width: float
	height: float
	unit: str = "pt"
	margins: Margins = dataclasses.field(default_factory=Margins)


@dataclasses.dataclass
class TextStyle:
	font: str | None = None
	font_size: float = DEFAULT_FONT_SIZE
	color: tuple[float, float, float] = DEFAULT_COLOR
	tracking: float = 0.0


@dataclasses.dataclass
class TextRun:
	text: str
	font: str | None = None
	font_size: float | None = None
	color: tuple[float, float, float] | None = None
	tracking: float | None = None
	allow_empty: bool = False
	url: str | None = None


@dataclasses.dataclass
class ResolvedRunStyle:
	font: str | None
	font_size: float
	color: tuple[float, float, float]
	tracking: float


@dataclasses.dataclass
class TextBlock:
	runs: list[TextRun]
	layer: str | None = None


@dataclasses.dataclass
class ImageTransform:
	scale_x: float = 1.0
	scale_y: float = 1.0
	rotation: float = 0.0
	translate_x: float = 0.0
	translate_y: float = 0.0


@dataclasses.dataclass
class ImageBlock:
	image: str
	width: float | None = None
	height: float | None = None
	transform: ImageTransform | None = None
	layer: str | None = None


ContentBlock = TextBlock | ImageBlock


@dataclasses.dataclass
class Document:
	page: PageConfig
	blocks: list[ContentBlock] = dataclasses.field(default_factory=list)
	fonts: list[FontDeclaration] = dataclasses.field(default_factory=list)
	images: list[ImageDeclaration] = dataclasses.field(default_factory=list)
	default_style: TextStyle = dataclasses.field(default_factory=TextStyle)
	metadata: DocumentMetadata = dataclasses.field(default_factory=DocumentMetadata)


#============================================
def resolve_run_style(run: TextRun, default_style: TextStyle) -> ResolvedRunStyle:
	"""
	Merge a run's own style fields over the document default style.

	Args:
		run: Text run.
		default_style: Document default style.

	Returns:
		ResolvedRunStyle with every field filled.
	"""
	font = run.font if run.font is not None else default_style.font
	font_size = run.font_size if run.font_size is not None else default_style.font_size
	color = run.color if run.color is not None else default_style.color
	tracking = run.tracking if run.tracking is not None else default_style.tracking
	return ResolvedRunStyle(font=font, font_size=font_size, color=tuple(color), tracking=tracking)
