import pathlib

import fitz
import PIL.Image

import document_pdf_converter as dpc
import document_pdf_converter.config
import document_pdf_converter.convert
import document_pdf_converter.model


ConversionConfig = dpc.config.ConversionConfig
Document = dpc.model.Document
FontDeclaration = dpc.model.FontDeclaration
FontSource = dpc.model.FontSource
ImageBlock = dpc.model.ImageBlock
ImageDeclaration = dpc.model.ImageDeclaration
ImageSource = dpc.model.ImageSource
Margins = dpc.model.Margins
PageConfig = dpc.model.PageConfig
TextBlock = dpc.model.TextBlock
TextRun = dpc.model.TextRun
TextStyle = dpc.model.TextStyle
DPI = 144
INK_THRESHOLD = 200
PAGE_SIZE = 300.0
MARGIN = 30.0


#============================================
def _render_pdf_first_page(path: pathlib.Path) -> PIL.Image.Image:
	"""
	Render the first page of a PDF to an image.

	Args:
		path: PDF path.

	Returns:
		PIL image.
	"""
	document = fitz.open(path)
	page = document[0]
	scale = DPI / 72.0
	matrix = fitz.Matrix(scale, scale)
	pixmap = page.get_pixmap(matrix=matrix, alpha=False)
	image = PIL.Image.frombytes("RGB", [pixmap.width, pixmap.height], pixmap.samples)
	document.close()
	return image


#============================================
def _count_ink_ratio(gray: PIL.Image.Image, threshold: int) -> float:
	"""
	Compute the ink ratio for a grayscale region.

	Args:
		gray: Grayscale image region.
		threshold: Pixel intensity threshold.

	Returns:
		Ink ratio.
	"""
	pixels = list(gray.getdata())
	if not pixels:
		return 0.0
	ink = sum(1 for value in pixels if value < threshold)
	return ink / len(pixels)


#============================================
def test_rendered_page_stays_inside_margins(tmp_path: pathlib.Path) -> None:
	"""
	Smoke test that wrapped text and an image land inside the content box.
	"""
	image_path = tmp_path / "block.png"
	PIL.Image.new("RGB", (8, 8), (0, 0, 0)).save(image_path)
	paragraph = "The quick brown fox jumps over the lazy dog. " * 6
	document = Document(
		page=PageConfig(width=PAGE_SIZE, height=PAGE_SIZE, unit="pt", margins=Margins.uniform(MARGIN)),
		blocks=[
			TextBlock(runs=[TextRun(text=paragraph)]),
			ImageBlock(image="block", width=60.0, height=60.0),
		],
		fonts=[FontDeclaration(name="body", source=FontSource(builtin="Helvetica"))],
		images=[ImageDeclaration(name="block", source=ImageSource(path=str(image_path)))],
		default_style=TextStyle(font="body", font_size=12.0),
	)
	output_pdf = tmp_path / "smoke.pdf"
	result = dpc.convert.convert_document(document, ConversionConfig(overflow_policy="strict"))
	result.writer.save(output_pdf)

	gray = _render_pdf_first_page(output_pdf).convert("L")
	scale = DPI / 72.0
	inner = int(round(MARGIN * scale))
	outer = int(round(PAGE_SIZE * scale))
	# Leave a point of slack for antialiasing at the content edge.
	strip = int(round((MARGIN - 1.0) * scale))

	strips = {
		"top": gray.crop((0, 0, outer, strip)),
		"bottom": gray.crop((0, outer - strip, outer, outer)),
		"left": gray.crop((0, 0, strip, outer)),
		"right": gray.crop((outer - strip, 0, outer, outer)),
	}
	for name, region in strips.items():
		ratio = _count_ink_ratio(region, INK_THRESHOLD)
		assert ratio == 0.0, f"ink in {name} margin, ratio {ratio:.4f}"

	content = gray.crop((inner, inner, outer - inner, outer - inner))
	assert _count_ink_ratio(content, INK_THRESHOLD) > 0.02
