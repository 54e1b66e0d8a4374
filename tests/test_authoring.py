import io

import pypdf
import pytest

import document_pdf_converter as dpc
import document_pdf_converter.assembler
import document_pdf_converter.authoring
import document_pdf_converter.catalog
import document_pdf_converter.config
import document_pdf_converter.errors
import document_pdf_converter.model


DocumentBuilder = dpc.authoring.DocumentBuilder
FontId = dpc.catalog.FontId
ConversionConfig = dpc.config.ConversionConfig
DocumentMetadata = dpc.model.DocumentMetadata
FontSource = dpc.model.FontSource
HELVETICA = FontSource(builtin="Helvetica")


#============================================
def build_builder(**kwargs) -> DocumentBuilder:
	config = ConversionConfig(overflow_policy="strict", compress_streams=False)
	return DocumentBuilder(config=config, **kwargs)


#============================================
def read_pdf(builder: DocumentBuilder) -> tuple[bytes, pypdf.PdfReader]:
	data = builder.write_all().to_bytes()
	return data, pypdf.PdfReader(io.BytesIO(data))


#============================================
def test_text_position_in_millimeters() -> None:
	builder = build_builder()
	font_id = builder.add_font(HELVETICA)
	page_index, layer_index = builder.add_page_with_layer(210.0, 297.0)
	builder.write_text_to_layer_in_page(page_index, layer_index, "Hello", font_id, 14.0, (20.0, 30.0))
	_data, reader = read_pdf(builder)
	page = reader.pages[0]
	mm = dpc.config.millimeters_to_points
	assert float(page.mediabox.width) == pytest.approx(mm(210.0), abs=1e-3)
	content = page["/Contents"][0].get_object().get_data()
	format_number = dpc.assembler.format_number
	expected = f"{format_number(mm(20.0))} {format_number(mm(297.0) - mm(30.0))} Td"
	assert expected.encode("ascii") in content
	assert b"/F0 14 Tf" in content
	assert b" Ts" not in content


#============================================
def test_font_shared_across_pages() -> None:
	builder = build_builder(unit="pt")
	first = builder.add_font(HELVETICA)
	second = builder.add_font(FontSource(builtin="Helvetica"))
	assert first == second
	for _ in range(3):
		page_index, layer_index = builder.add_page_with_layer(200.0, 200.0)
		builder.write_text_to_layer_in_page(page_index, layer_index, "page", first, 12.0, (10.0, 20.0))
	data, reader = read_pdf(builder)
	assert len(reader.pages) == 3
	assert data.count(b"/BaseFont /Helvetica") == 1
	font_objects = {
		reference.idnum
		for page in reader.pages
		for reference in page["/Resources"]["/Font"].values()
	}
	assert len(font_objects) == 1


#============================================
def test_added_layers_become_optional_content_groups() -> None:
	builder = build_builder(unit="pt")
	font_id = builder.add_font(HELVETICA)
	page_index, base_layer = builder.add_page_with_layer(200.0, 200.0, "Base")
	notes_layer = builder.add_layer(page_index, "Notes")
	assert (base_layer, notes_layer) == (0, 1)
	with pytest.raises(dpc.errors.AuthoringError):
		builder.add_layer(page_index, "Notes")
	with pytest.raises(dpc.errors.AuthoringError):
		builder.add_layer(page_index, "")
	builder.write_text_to_layer_in_page(page_index, notes_layer, "note", font_id, 10.0, (10.0, 20.0))
	_data, reader = read_pdf(builder)
	groups = reader.trailer["/Root"]["/OCProperties"]["/OCGs"]
	assert [group.get_object()["/Name"] for group in groups] == ["Base", "Notes"]
	assert len(reader.pages[0]["/Contents"]) == 2


#============================================
def test_write_all_only_once() -> None:
	builder = build_builder()
	builder.add_page_with_layer(100.0, 100.0)
	builder.write_all()
	with pytest.raises(dpc.errors.AuthoringError):
		builder.write_all()
	with pytest.raises(dpc.errors.AuthoringError):
		builder.add_page_with_layer(100.0, 100.0)


#============================================
def test_write_all_needs_a_page() -> None:
	with pytest.raises(dpc.errors.AuthoringError):
		build_builder().write_all()


#============================================
def test_unknown_ids_rejected(fixed_loader) -> None:
	builder = build_builder(loader=fixed_loader)
	page_index, layer_index = builder.add_page_with_layer(100.0, 100.0)
	with pytest.raises(dpc.errors.AuthoringError):
		builder.write_text_to_layer_in_page(page_index, layer_index, "x", FontId(3), 12.0, (0.0, 10.0))
	with pytest.raises(dpc.errors.AuthoringError):
		builder.write_text_to_layer_in_page(page_index, 5, "x", builder.add_font(HELVETICA), 12.0, (0.0, 10.0))
	with pytest.raises(dpc.errors.InvalidStyleError):
		builder.write_text_to_layer_in_page(page_index, layer_index, "x", builder.add_font(HELVETICA), -1.0, (0.0, 10.0))


#============================================
def test_ids_are_per_builder() -> None:
	first = build_builder()
	first.add_font(HELVETICA)
	assert first.add_font(FontSource(builtin="Courier")) == FontId(1)
	second = build_builder()
	assert second.add_font(FontSource(builtin="Courier")) == FontId(0)


#============================================
def test_rotated_image_bounding_box(fixed_loader) -> None:
	"""
	A 10 x 20 pt image turned 90 degrees occupies a 20 x 10 box.
	"""
	builder = build_builder(unit="pt", loader=fixed_loader)
	image_id = builder.add_image("logo.png")
	page_index, layer_index = builder.add_page_with_layer(100.0, 100.0)
	builder.place_image_in_layer(page_index, layer_index, image_id, (5.0, 5.0), rotation=90.0)
	placed = builder.plan.pages[0].layers[0].elements[0]
	assert placed.width == pytest.approx(20.0)
	assert placed.height == pytest.approx(10.0)
	assert (placed.x, placed.y) == (5.0, 5.0)


#============================================
def test_metadata_written(tmp_path) -> None:
	builder = build_builder(metadata=DocumentMetadata(title="Built", subject="Labels"))
	builder.add_page_with_layer(100.0, 100.0)
	output_path = tmp_path / "built.pdf"
	builder.save(output_path)
	reader = pypdf.PdfReader(output_path)
	assert reader.metadata.title == "Built"
	assert reader.metadata.subject == "Labels"


#============================================
@pytest.mark.parametrize(
	"size, rotation",
	[
		((0.0, 10.0), 0.0),
		((10.0, -2.0), 0.0),
		((float("nan"), 10.0), 0.0),
		((10.0, float("inf")), 0.0),
		(("10", 10.0), 0.0),
		((10.0,), 0.0),
		((10.0, 10.0), float("nan")),
	],
)
def test_bad_image_placement_rejected(fixed_loader, size, rotation) -> None:
	builder = build_builder(unit="pt", loader=fixed_loader)
	image_id = builder.add_image("logo.png")
	page_index, layer_index = builder.add_page_with_layer(100.0, 100.0)
	with pytest.raises(dpc.errors.AuthoringError):
		builder.place_image_in_layer(page_index, layer_index, image_id, (5.0, 5.0), size=size, rotation=rotation)
	assert builder.plan.pages[0].layers[0].elements == []


#============================================
def test_image_size_in_inches(fixed_loader) -> None:
	builder = build_builder(unit="in", loader=fixed_loader)
	image_id = builder.add_image("logo.png")
	page_index, layer_index = builder.add_page_with_layer(8.5, 11.0)
	builder.place_image_in_layer(page_index, layer_index, image_id, (1.0, 1.0), size=(2.0, 0.5))
	placed = builder.plan.pages[0].layers[0].elements[0]
	assert (placed.width, placed.height) == pytest.approx((144.0, 36.0))
	assert (placed.x, placed.y) == pytest.approx((72.0, 72.0))
	assert builder.plan.pages[0].width == pytest.approx(612.0)
