import copy
import json
import pathlib
import random
import re

import pytest

import document_pdf_converter as dpc
import document_pdf_converter.config
import document_pdf_converter.convert
import document_pdf_converter.errors
import document_pdf_converter.layout
import document_pdf_converter.model
import document_pdf_converter.validator


ConversionConfig = dpc.config.ConversionConfig
PlacedImage = dpc.layout.PlacedImage
Document = dpc.model.Document
FontDeclaration = dpc.model.FontDeclaration
FontSource = dpc.model.FontSource
ImageBlock = dpc.model.ImageBlock
ImageDeclaration = dpc.model.ImageDeclaration
ImageSource = dpc.model.ImageSource
ImageTransform = dpc.model.ImageTransform
Margins = dpc.model.Margins
PageConfig = dpc.model.PageConfig
TextBlock = dpc.model.TextBlock
TextRun = dpc.model.TextRun
TextStyle = dpc.model.TextStyle
ID_PATTERN = re.compile(rb"/ID\s*\[[^\]]*\]")
UNIT_CHOICES = ("pt", "mm", "in")
FUZZ_IMAGES = {
	"logo": ("logo.png", (10, 20)),
	"wide": ("wide.png", (300, 40)),
	"dot": ("dot.png", (1, 1)),
}


#============================================
def build_document(blocks: list) -> Document:
	return Document(
		page=PageConfig(width=200.0, height=200.0, unit="pt", margins=Margins.uniform(10.0)),
		blocks=blocks,
		fonts=[FontDeclaration(name="body", source=FontSource(builtin="Helvetica"))],
		images=[ImageDeclaration(name="logo", source=ImageSource(path="logo.png"))],
		default_style=TextStyle(font="body"),
	)


#============================================
def test_configuration_stage() -> None:
	document = build_document([TextBlock(runs=[TextRun(text="x")])])
	with pytest.raises(dpc.errors.ConversionError) as excinfo:
		dpc.convert.to_pdf(document, ConversionConfig(overflow_policy="sideways"))
	assert excinfo.value.stage == "configuration"
	assert isinstance(excinfo.value.error, dpc.errors.ConfigurationError)


#============================================
def test_validate_stage_keeps_cause() -> None:
	document = build_document([TextBlock(runs=[TextRun(text="x", font="nope")])])
	with pytest.raises(dpc.errors.ConversionError) as excinfo:
		dpc.convert.to_pdf(document, ConversionConfig(overflow_policy="flow"))
	assert excinfo.value.stage == "validate"
	assert isinstance(excinfo.value.error, dpc.errors.DanglingResourceReferenceError)
	assert excinfo.value.__cause__ is excinfo.value.error


#============================================
def test_layout_stage_for_missing_image(fixed_loader) -> None:
	fixed_loader.failing_keys.add(ImageSource(path="logo.png").key())
	document = build_document([ImageBlock(image="logo")])
	with pytest.raises(dpc.errors.ConversionError) as excinfo:
		dpc.convert.to_pdf(document, ConversionConfig(overflow_policy="flow"), fixed_loader)
	assert excinfo.value.stage == "layout"
	assert isinstance(excinfo.value.error, dpc.errors.ResourceUnavailableError)


#============================================
def test_layout_stage_for_strict_overflow() -> None:
	blocks = [TextBlock(runs=[TextRun(text="line")]) for _ in range(20)]
	with pytest.raises(dpc.errors.ConversionError) as excinfo:
		dpc.convert.to_pdf(build_document(blocks), ConversionConfig(overflow_policy="strict"))
	assert excinfo.value.stage == "layout"
	assert isinstance(excinfo.value.error, dpc.errors.ContentOverflowError)


#============================================
def test_output_is_deterministic() -> None:
	"""
	Two conversions of one document give equal plans and equal bytes
	apart from the file identifier.
	"""
	blocks = [TextBlock(runs=[TextRun(text="Deterministic output " * 8)]) for _ in range(6)]
	document = build_document(blocks)
	config = ConversionConfig(overflow_policy="flow")
	first = dpc.convert.convert_document(document, config)
	second = dpc.convert.convert_document(document, config)
	assert first.plan == second.plan
	first_bytes = ID_PATTERN.sub(b"", first.writer.to_bytes())
	second_bytes = ID_PATTERN.sub(b"", second.writer.to_bytes())
	assert first_bytes == second_bytes


#============================================
def test_conversion_does_not_mutate_document() -> None:
	document = build_document([TextBlock(runs=[TextRun(text="café")])])
	snapshot = copy.deepcopy(document)
	dpc.convert.to_pdf_bytes(document, ConversionConfig(overflow_policy="flow"))
	assert document == snapshot


#============================================
def random_text(rng: random.Random) -> str:
	"""
	Random text of valid code points, surrogates excluded.
	"""
	chars = []
	for _ in range(rng.randint(1, 40)):
		code = rng.choice([rng.randint(32, 126), rng.randint(0, 0x2FFF), rng.randint(0xE000, 0x10FFFF)])
		if 0xD800 <= code <= 0xDFFF:
			code = 0x41
		chars.append(chr(code))
	return "".join(chars)


#============================================
def random_page(rng: random.Random) -> PageConfig:
	"""
	Random page geometry in a random unit, margins well inside the page.
	"""
	unit = rng.choice(UNIT_CHOICES)
	factor = dpc.config.UNIT_FACTORS[unit]
	width = rng.uniform(60.0, 700.0) / factor
	height = rng.uniform(60.0, 900.0) / factor
	margins = Margins(
		top=rng.uniform(0.0, height / 4.0),
		right=rng.uniform(0.0, width / 4.0),
		bottom=rng.uniform(0.0, height / 4.0),
		left=rng.uniform(0.0, width / 4.0),
	)
	return PageConfig(width=width, height=height, unit=unit, margins=margins)


#============================================
def random_image_block(rng: random.Random, factor: float) -> ImageBlock:
	transform = None
	if rng.random() < 0.6:
		transform = ImageTransform(
			scale_x=rng.uniform(0.1, 3.0),
			scale_y=rng.uniform(0.1, 3.0),
			rotation=rng.uniform(-360.0, 360.0),
			translate_x=rng.uniform(0.0, 40.0) / factor,
			translate_y=rng.uniform(0.0, 40.0) / factor,
		)
	return ImageBlock(
		image=rng.choice(list(FUZZ_IMAGES)),
		width=rng.choice([None, rng.uniform(0.5, 400.0) / factor]),
		height=rng.choice([None, rng.uniform(0.5, 400.0) / factor]),
		transform=transform,
		layer=rng.choice([None, "A", "B"]),
	)


#============================================
def random_text_block(rng: random.Random) -> TextBlock:
	runs = [
		TextRun(text=random_text(rng), font_size=rng.uniform(1.0, 200.0))
		for _ in range(rng.randint(1, 3))
	]
	return TextBlock(runs=runs, layer=rng.choice([None, "A", "B"]))


#============================================
def assert_inside_content(plan, validated) -> None:
	"""
	Every placed element lies within the content rectangle.
	"""
	slack = 1e-6
	for page in plan.pages:
		assert page.layers
		for layer in page.layers:
			for element in layer.elements:
				assert element.x >= validated.content_left - slack
				assert element.x + element.width <= validated.content_right + slack
				assert element.y >= validated.content_top - slack
				if isinstance(element, PlacedImage):
					assert element.y + element.height <= validated.content_bottom + slack


#============================================
def test_random_documents_never_crash(loader_factory) -> None:
	"""
	Random valid documents with text and images either convert, staying
	inside the content rectangle, or fail with a typed error.
	"""
	rng = random.Random(1234)
	loader = loader_factory(image_sizes={path: size for path, size in FUZZ_IMAGES.values()})
	converted = 0
	for _ in range(120):
		page = random_page(rng)
		factor = dpc.config.UNIT_FACTORS[page.unit]
		blocks = []
		for _ in range(rng.randint(0, 6)):
			if rng.random() < 0.5:
				blocks.append(random_image_block(rng, factor))
			else:
				blocks.append(random_text_block(rng))
		document = Document(
			page=page,
			blocks=blocks,
			fonts=[FontDeclaration(name="body", source=FontSource(builtin="Helvetica"))],
			images=[
				ImageDeclaration(name=name, source=ImageSource(path=path))
				for name, (path, _size) in FUZZ_IMAGES.items()
			],
			default_style=TextStyle(font="body"),
		)
		config = ConversionConfig(overflow_policy=rng.choice(["flow", "strict"]))
		try:
			result = dpc.convert.convert_document(document, config, loader)
		except dpc.errors.ConversionError as error:
			assert isinstance(error.error, (dpc.errors.DocumentError, dpc.errors.LayoutError))
			continue
		assert_inside_content(result.plan, dpc.validator.validate(document))
		assert result.writer.to_bytes().startswith(b"%PDF-1.5")
		converted += 1
	assert converted > 0


#============================================
def test_manifest_lists_embedded_resources(tmp_path: pathlib.Path) -> None:
	blocks = [TextBlock(runs=[TextRun(text="one")]), TextBlock(runs=[TextRun(text="two")], layer="Notes")]
	config = ConversionConfig(overflow_policy="flow")
	result = dpc.convert.convert_document(build_document(blocks), config)
	output_path = tmp_path / "out.pdf"
	result.writer.save(output_path)
	manifest_path = tmp_path / "out.json"
	dpc.convert.write_manifest(manifest_path, None, output_path, result, config)
	data = json.loads(manifest_path.read_text(encoding="utf-8"))
	assert data["input"] is None
	assert data["output"] == str(output_path)
	assert len(data["pages"]) == 1
	assert [layer["name"] for layer in data["pages"][0]["layers"]] == ["Layer0", "Notes"]
	assert data["pages"][0]["layers"][0]["text_runs"] == 1
	assert [layer["characters"] for layer in data["pages"][0]["layers"]] == [3, 3]
	assert data["fonts"] == [{"id": "F0", "key": "builtin:Helvetica", "base_font": "Helvetica"}]
	assert data["images"] == []
	assert data["config"]["overflow_policy"] == "flow"
	assert output_path.read_bytes().startswith(b"%PDF-1.5")
