"""
CLI entry point for JSON description to PDF conversion.
"""

# Standard Library
import argparse
import os
import pathlib
import sys
import time

# local repo modules
import document_pdf_converter as dpc
import document_pdf_converter.config
import document_pdf_converter.convert
import document_pdf_converter.description
import document_pdf_converter.errors
import document_pdf_converter.resources


ConversionConfig = dpc.config.ConversionConfig

OVERFLOW_FLOW = dpc.config.OVERFLOW_FLOW
OVERFLOW_STRICT = dpc.config.OVERFLOW_STRICT
DEFAULT_LINE_HEIGHT_FACTOR = dpc.config.DEFAULT_LINE_HEIGHT_FACTOR
DEFAULT_LAYER_NAME = dpc.config.DEFAULT_LAYER_NAME


#============================================
def build_config(args: argparse.Namespace) -> ConversionConfig:
	"""
	Build conversion config from CLI args.

	Args:
		args: Parsed argparse namespace.

	Returns:
		ConversionConfig.
	"""
	return ConversionConfig(
		overflow_policy=args.overflow_policy,
		line_height_factor=args.line_height_factor,
		normalization_form="NFC",
		default_layer_name=args.layer_name,
		compress_streams=args.compress,
		verbose=args.verbose,
	)


#============================================
def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
	"""
	Parse command line arguments.

	Returns:
		Parsed argparse namespace.
	"""
	parser = argparse.ArgumentParser(description="Convert a JSON document description to PDF.")

	io_group = parser.add_argument_group("Input/Output")
	io_group.add_argument("-i", "--input", dest="input_path", required=True, help="Document description JSON.")
	io_group.add_argument("-o", "--output", dest="output_path", required=True, help="Output PDF path.")
	io_group.add_argument("-m", "--manifest", dest="manifest_path", default=None, help="Output manifest JSON path.")

	layout_group = parser.add_argument_group("Layout")
	layout_group.add_argument(
		"-f", "--flow", dest="overflow_policy", action="store_const", const=OVERFLOW_FLOW,
		help="Open new pages when content overflows.",
	)
	layout_group.add_argument(
		"-s", "--strict", dest="overflow_policy", action="store_const", const=OVERFLOW_STRICT,
		help="Fail when content overflows a page.",
	)
	layout_group.add_argument(
		"-l", "--line-height", dest="line_height_factor", type=float, default=DEFAULT_LINE_HEIGHT_FACTOR,
		help="Line height as a multiple of the font size.",
	)
	layout_group.add_argument("-L", "--layer-name", dest="layer_name", default=DEFAULT_LAYER_NAME, help="Default layer name.")

	output_group = parser.add_argument_group("Behavior")
	output_group.add_argument("-z", "--compress", dest="compress", action="store_true", help="Compress content streams.")
	output_group.add_argument("-Z", "--no-compress", dest="compress", action="store_false", help="Write plain content streams.")
	output_group.add_argument("-v", "--verbose", dest="verbose", action="store_true", help="Print stage details.")
	output_group.add_argument("-q", "--quiet", dest="verbose", action="store_false", help="Print only the summary.")

	parser.set_defaults(
		overflow_policy=OVERFLOW_FLOW,
		compress=True,
		verbose=False,
	)

	args = parser.parse_args(argv)
	return args


#============================================
def run_pipeline(args: argparse.Namespace) -> None:
	"""
	Run the conversion from description file to PDF.

	Args:
		args: Parsed argparse namespace.
	"""
	print("Document to PDF pipeline")
	print(f"Input: {args.input_path}")
	print(f"Output PDF: {args.output_path}")
	if args.manifest_path:
		print(f"Manifest: {args.manifest_path}")
	print(f"Overflow policy: {args.overflow_policy}")
	print(f"Compress streams: {args.compress}")

	start_time = time.perf_counter()
	input_path = pathlib.Path(args.input_path)
	document = dpc.description.load_document(input_path)
	print(f"Blocks: {len(document.blocks)}")

	config = build_config(args)
	loader = dpc.resources.FileResourceLoader(base_dir=os.path.dirname(os.path.abspath(input_path)))
	result = dpc.convert.convert_document(document, config, loader)

	output_path = pathlib.Path(args.output_path)
	write_start = time.perf_counter()
	result.writer.save(output_path)
	write_end = time.perf_counter()
	print(f"Pages written: {result.writer.page_count}")

	if args.manifest_path:
		dpc.convert.write_manifest(
			pathlib.Path(args.manifest_path),
			input_path,
			output_path,
			result,
			config,
		)
		print(f"Manifest written: {args.manifest_path}")

	total_time = time.perf_counter() - start_time
	print(
		"Timing: validate={:.2f}s layout={:.2f}s assemble={:.2f}s write={:.2f}s total={:.2f}s".format(
			result.timings["validate"],
			result.timings["layout"],
			result.timings["assemble"],
			write_end - write_start,
			total_time,
		)
	)


#============================================
def main(argv: list[str] | None = None) -> int:
	"""
	Main entry point.

	Returns:
		Process exit code.
	"""
	args = parse_args(argv)
	try:
		run_pipeline(args)
	except dpc.errors.DocumentPdfError as error:
		print(f"ERROR: {error}", file=sys.stderr)
		return 1
	return 0
