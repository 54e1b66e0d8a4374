"""
Conversion driver: validate, lay out, assemble.
"""

# Standard Library
import dataclasses
import json
import pathlib
import time

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
Document = dpc.model.Document
ResourceCatalog = dpc.catalog.ResourceCatalog
PlacementPlan = dpc.layout.PlacementPlan
GlyphRun = dpc.layout.GlyphRun
PdfObjectWriter = dpc.writer.PdfObjectWriter
ConversionError = dpc.errors.ConversionError

STAGE_CONFIGURATION = "configuration"
STAGE_VALIDATE = "validate"
STAGE_LAYOUT = "layout"
STAGE_ASSEMBLE = "assemble"
STAGE_OUTPUT = "output"


@dataclasses.dataclass
class ConversionContext:
	config: ConversionConfig
	catalog: ResourceCatalog


@dataclasses.dataclass
class ConversionResult:
	writer: PdfObjectWriter
	plan: PlacementPlan
	catalog: ResourceCatalog
	timings: dict[str, float]


#============================================
def convert_document(document: Document, config: ConversionConfig, loader=None) -> ConversionResult:
	"""
	Run the pipeline and keep the intermediate plan and catalog.

	Args:
		document: Document to convert, read only.
		config: Conversion config.
		loader: Resource loader; defaults to FileResourceLoader.

	Returns:
		ConversionResult.
	"""
	try:
		dpc.config.validate_config(config)
	except dpc.errors.ConfigurationError as error:
		raise ConversionError(STAGE_CONFIGURATION, error) from error
	if loader is None:
		loader = dpc.resources.FileResourceLoader()
	context = ConversionContext(config=config, catalog=ResourceCatalog(loader))
	timings: dict[str, float] = {}

	start = time.perf_counter()
	try:
		validated = dpc.validator.validate(document)
	except dpc.errors.DocumentError as error:
		raise ConversionError(STAGE_VALIDATE, error) from error
	timings[STAGE_VALIDATE] = time.perf_counter() - start

	start = time.perf_counter()
	try:
		plan = dpc.layout.layout_document(validated, context.catalog, config)
	except dpc.errors.LayoutError as error:
		raise ConversionError(STAGE_LAYOUT, error) from error
	timings[STAGE_LAYOUT] = time.perf_counter() - start

	start = time.perf_counter()
	try:
		writer = dpc.assembler.assemble(plan, context.catalog, document.metadata, config)
	except dpc.errors.AssemblerError as error:
		raise ConversionError(STAGE_ASSEMBLE, error) from error
	timings[STAGE_ASSEMBLE] = time.perf_counter() - start

	if config.verbose:
		print(
			"Timing: validate={:.2f}s layout={:.2f}s assemble={:.2f}s".format(
				timings[STAGE_VALIDATE],
				timings[STAGE_LAYOUT],
				timings[STAGE_ASSEMBLE],
			)
		)
	return ConversionResult(writer=writer, plan=plan, catalog=context.catalog, timings=timings)


#============================================
def to_pdf(document: Document, config: ConversionConfig, loader=None) -> PdfObjectWriter:
	"""
	Convert a document into a low-level PDF document handle.

	Args:
		document: Document to convert.
		config: Conversion config; overflow_policy is required.
		loader: Optional resource loader.

	Returns:
		PdfObjectWriter.
	"""
	return convert_document(document, config, loader).writer


#============================================
def to_pdf_bytes(document: Document, config: ConversionConfig, loader=None) -> bytes:
	"""
	Convert a document straight to PDF bytes.
	"""
	writer = to_pdf(document, config, loader)
	try:
		return writer.to_bytes()
	except dpc.errors.OutputError as error:
		raise ConversionError(STAGE_OUTPUT, error) from error


#============================================
def write_manifest(
	manifest_path: pathlib.Path,
	document_path: pathlib.Path | None,
	output_path: pathlib.Path,
	result: ConversionResult,
	config: ConversionConfig,
) -> None:
	"""
	Write a manifest JSON file describing the converted output.

	Args:
		manifest_path: Output path.
		document_path: Input description path, if any.
		output_path: Output PDF path.
		result: Conversion result.
		config: Conversion config.
	"""
	pages = []
	for page in result.plan.pages:
		layers = []
		for layer in page.layers:
			runs = [element for element in layer.elements if isinstance(element, GlyphRun)]
			text_runs = len(runs)
			layers.append({
				"name": layer.name,
				"text_runs": text_runs,
				"characters": sum(len(run.text) for run in runs),
				"images": len(layer.elements) - text_runs,
			})
		pages.append({"width": page.width, "height": page.height, "layers": layers})
	data = {
		"input": str(document_path) if document_path is not None else None,
		"output": str(output_path),
		"pages": pages,
		"fonts": [
			{"id": entry.font_id.resource_name, "key": entry.key, "base_font": entry.metrics.base_font}
			for entry in result.catalog.font_entries()
			if entry.embedded
		],
		"images": [
			{"id": entry.image_id.resource_name, "key": entry.key, "width": entry.data.width, "height": entry.data.height}
			for entry in result.catalog.image_entries()
			if entry.embedded
		],
		"config": {
			"overflow_policy": config.overflow_policy,
			"line_height_factor": config.line_height_factor,
			"normalization_form": config.normalization_form,
			"default_layer_name": config.default_layer_name,
			"compress_streams": config.compress_streams,
			"pdf_version": config.pdf_version,
		},
	}
	with manifest_path.open("w", encoding="utf-8") as handle:
		json.dump(data, handle, indent=2, sort_keys=True)
