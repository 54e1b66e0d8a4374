"""
Thin adapter over pypdf.PdfWriter used as the low-level object sink.
"""

# Standard Library
import io
import pathlib

# PIP3 modules
import pypdf
import pypdf.annotations
import pypdf.generic

# local repo modules
import document_pdf_converter as dpc
import document_pdf_converter.errors


ArrayObject = pypdf.generic.ArrayObject
DecodedStreamObject = pypdf.generic.DecodedStreamObject
DictionaryObject = pypdf.generic.DictionaryObject
IndirectObject = pypdf.generic.IndirectObject
NameObject = pypdf.generic.NameObject
NumberObject = pypdf.generic.NumberObject
StreamObject = pypdf.generic.StreamObject
OutputError = dpc.errors.OutputError


#============================================
def build_stream(data: bytes, compress: bool, entries: dict | None = None) -> StreamObject:
	"""
	Build a stream object, optionally Flate-compressed.

	Args:
		data: Decoded stream bytes.
		compress: Apply FlateDecode when True.
		entries: Extra dictionary entries keyed by PDF name.

	Returns:
		StreamObject.
	"""
	stream = DecodedStreamObject()
	stream.set_data(data)
	if compress:
		stream = stream.flate_encode()
	for name, value in (entries or {}).items():
		stream[NameObject(name)] = value
	return stream


class PdfObjectWriter:
	"""
	Allocates objects, writes pages and finalizes the file bytes.
	"""

	def __init__(self, pdf_version: str = "1.5") -> None:
		self._writer = pypdf.PdfWriter()
		self._writer.pdf_header = f"%PDF-{pdf_version}".encode("ascii")

	#============================================
	def allocate(self, obj) -> IndirectObject:
		"""
		Register an object and return its indirect reference.
		"""
		return self._writer._add_object(obj)

	#============================================
	def add_page(
		self,
		width: float,
		height: float,
		contents: list[IndirectObject],
		resources: DictionaryObject,
	) -> pypdf.PageObject:
		"""
		Append a page with the given content streams and resources.

		Args:
			width: Page width in points.
			height: Page height in points.
			contents: Content stream references, drawn in order.
			resources: Page resource dictionary.

		Returns:
			The page object stored in the writer.
		"""
		self._writer.add_blank_page(width=width, height=height)
		page = self._writer.pages[-1]
		page[NameObject("/Resources")] = resources
		page[NameObject("/Contents")] = ArrayObject(contents)
		page[NameObject("/Rotate")] = NumberObject(0)
		return page

	#============================================
	def add_link(self, page_index: int, rect: tuple[float, float, float, float], url: str) -> None:
		"""
		Add a URI link annotation to a page.
		"""
		annotation = pypdf.annotations.Link(rect=rect, url=url)
		self._writer.add_annotation(page_number=page_index, annotation=annotation)

	#============================================
	def set_catalog_entry(self, name: str, value) -> None:
		self._writer.root_object[NameObject(name)] = value

	#============================================
	def set_info(self, info: dict[str, str]) -> None:
		self._writer.add_metadata(info)

	#============================================
	@property
	def page_count(self) -> int:
		return len(self._writer.pages)

	#============================================
	def to_bytes(self) -> bytes:
		"""
		Serialize the document.

		Returns:
			PDF file bytes.
		"""
		buffer = io.BytesIO()
		try:
			self._writer.write(buffer)
		except OSError as error:
			raise OutputError(f"could not serialize document: {error}") from error
		return buffer.getvalue()

	#============================================
	def save(self, path: pathlib.Path) -> None:
		"""
		Write the document to a file.

		Args:
			path: Output PDF path.
		"""
		data = self.to_bytes()
		try:
			with open(path, "wb") as handle:
				handle.write(data)
		except OSError as error:
			raise OutputError(f"could not write {path}: {error}") from error
