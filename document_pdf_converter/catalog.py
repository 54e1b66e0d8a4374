"""
Resource catalog: deduplicates fonts and images per conversion.
"""

# Standard Library
import dataclasses

# local repo modules
import document_pdf_converter as dpc
import document_pdf_converter.errors
import document_pdf_converter.model
import document_pdf_converter.resources


FontSource = dpc.model.FontSource
ImageSource = dpc.model.ImageSource
FontMetrics = dpc.resources.FontMetrics
ImageData = dpc.resources.ImageData
LoadError = dpc.errors.LoadError
ResourceUnavailableError = dpc.errors.ResourceUnavailableError
InvariantViolation = dpc.errors.InvariantViolation


@dataclasses.dataclass(frozen=True)
class FontId:
	index: int

	#============================================
	@property
	def resource_name(self) -> str:
		return f"F{self.index}"


@dataclasses.dataclass(frozen=True)
class ImageId:
	index: int

	#============================================
	@property
	def resource_name(self) -> str:
		return f"Im{self.index}"


@dataclasses.dataclass
class FontEntry:
	key: str
	font_id: FontId
	metrics: FontMetrics
	embedded: bool = False


@dataclasses.dataclass
class ImageEntry:
	key: str
	image_id: ImageId
	data: ImageData
	embedded: bool = False


class ResourceCatalog:
	"""
	Maps resource keys to sequential ids in order of first reference.

	Each key is loaded through the loader once and embedded at most once.
	The catalog belongs to a single conversion and is never shared.
	"""

	def __init__(self, loader) -> None:
		self.loader = loader
		self._fonts: list[FontEntry] = []
		self._images: list[ImageEntry] = []
		self._font_keys: dict[str, int] = {}
		self._image_keys: dict[str, int] = {}

	#============================================
	def intern_font(self, source: FontSource) -> FontId:
		"""
		Return the id for a font source, loading it on first use.

		Args:
			source: Font source.

		Returns:
			FontId.
		"""
		key = source.key()
		if key in self._font_keys:
			return self._fonts[self._font_keys[key]].font_id
		try:
			metrics = self.loader.load_font(source)
		except LoadError as error:
			raise ResourceUnavailableError(key, str(error)) from error
		font_id = FontId(len(self._fonts))
		self._font_keys[key] = font_id.index
		self._fonts.append(FontEntry(key=key, font_id=font_id, metrics=metrics))
		return font_id

	#============================================
	def intern_image(self, source: ImageSource) -> ImageId:
		"""
		Return the id for an image source, loading it on first use.

		Args:
			source: Image source.

		Returns:
			ImageId.
		"""
		key = source.key()
		if key in self._image_keys:
			return self._images[self._image_keys[key]].image_id
		try:
			data = self.loader.load_image(source)
		except LoadError as error:
			raise ResourceUnavailableError(key, str(error)) from error
		image_id = ImageId(len(self._images))
		self._image_keys[key] = image_id.index
		self._images.append(ImageEntry(key=key, image_id=image_id, data=data))
		return image_id

	#============================================
	def has_font(self, font_id: FontId) -> bool:
		return isinstance(font_id, FontId) and 0 <= font_id.index < len(self._fonts)

	#============================================
	def has_image(self, image_id: ImageId) -> bool:
		return isinstance(image_id, ImageId) and 0 <= image_id.index < len(self._images)

	#============================================
	def font_metrics(self, font_id: FontId) -> FontMetrics:
		if not self.has_font(font_id):
			raise InvariantViolation(f"font id {font_id} is not in the catalog")
		return self._fonts[font_id.index].metrics

	#============================================
	def image_data(self, image_id: ImageId) -> ImageData:
		if not self.has_image(image_id):
			raise InvariantViolation(f"image id {image_id} is not in the catalog")
		return self._images[image_id.index].data

	#============================================
	def font_entries(self) -> list[FontEntry]:
		return list(self._fonts)

	#============================================
	def image_entries(self) -> list[ImageEntry]:
		return list(self._images)

	#============================================
	def fonts_to_embed(self, referenced: set) -> list[FontEntry]:
		"""
		Fonts still waiting to be embedded, in id order.

		Args:
			referenced: FontIds used by the placement plan.

		Returns:
			Entries that are referenced and not yet embedded.
		"""
		return [
			entry for entry in self._fonts
			if entry.font_id in referenced and not entry.embedded
		]

	#============================================
	def images_to_embed(self, referenced: set) -> list[ImageEntry]:
		return [
			entry for entry in self._images
			if entry.image_id in referenced and not entry.embedded
		]

	#============================================
	def mark_font_embedded(self, font_id: FontId) -> None:
		"""
		Record that a font object was written.

		Args:
			font_id: Font id just embedded.
		"""
		entry = self._fonts[font_id.index]
		if entry.embedded:
			raise InvariantViolation(f"font {entry.key} embedded twice")
		entry.embedded = True

	#============================================
	def mark_image_embedded(self, image_id: ImageId) -> None:
		entry = self._images[image_id.index]
		if entry.embedded:
			raise InvariantViolation(f"image {entry.key} embedded twice")
		entry.embedded = True
