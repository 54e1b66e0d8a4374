"""
Pytest configuration for local imports and shared fixtures.
"""

# Standard Library
import os
import sys

# PIP3 modules
import pytest

#============================================


def _ensure_repo_on_path() -> None:
	"""
	Ensure the repository root is on sys.path.
	"""
	repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
	if repo_root not in sys.path:
		sys.path.insert(0, repo_root)


_ensure_repo_on_path()

import document_pdf_converter as dpc  # noqa: E402
import document_pdf_converter.errors  # noqa: E402
import document_pdf_converter.resources  # noqa: E402


GLYPH_WIDTH = 500.0
ASCENT = 800.0
DESCENT = -200.0


class FixedWidthLoader:
	"""
	Loader whose fonts give every glyph the same advance width.

	Glyph codes are the Latin-1 code points; anything else maps to "?".
	"""

	def __init__(
		self,
		glyph_width: float = GLYPH_WIDTH,
		kerning_pairs: dict | None = None,
		image_sizes: dict | None = None,
		failing_keys: set | None = None,
	) -> None:
		self.glyph_width = glyph_width
		self.kerning_pairs = kerning_pairs or {}
		self.image_sizes = image_sizes or {}
		self.failing_keys = failing_keys or set()
		self.font_calls: list[str] = []
		self.image_calls: list[str] = []

	#============================================
	def load_font(self, source) -> dpc.resources.FontMetrics:
		key = source.key()
		self.font_calls.append(key)
		if key in self.failing_keys:
			raise dpc.errors.LoadError(f"{key}: missing")
		glyph_map = {chr(code): code for code in range(32, 256) if code not in range(127, 160)}
		return dpc.resources.FontMetrics(
			key=key,
			kind=dpc.resources.FONT_KIND_BUILTIN,
			base_font="Helvetica",
			units_per_em=1000,
			ascent=ASCENT,
			descent=DESCENT,
			cap_height=700.0,
			italic_angle=0.0,
			flags=32,
			stem_v=80.0,
			bbox=(0.0, DESCENT, 1000.0, ASCENT),
			glyph_map=glyph_map,
			glyph_widths={code: self.glyph_width for code in glyph_map.values()},
			default_width=self.glyph_width,
			missing_glyph=ord("?"),
			kerning_pairs=dict(self.kerning_pairs),
		)

	#============================================
	def load_image(self, source) -> dpc.resources.ImageData:
		key = source.key()
		self.image_calls.append(key)
		if key in self.failing_keys:
			raise dpc.errors.LoadError(f"{key}: missing")
		width, height = self.image_sizes.get(source.path, (10, 20))
		return dpc.resources.ImageData(
			key=key,
			width=width,
			height=height,
			color_space="DeviceRGB",
			bits_per_component=8,
			pixels=bytes(width * height * 3),
		)


#============================================
@pytest.fixture
def fixed_loader() -> FixedWidthLoader:
	"""
	A fresh fixed-width loader.
	"""
	return FixedWidthLoader()


#============================================
@pytest.fixture
def loader_factory():
	"""
	The FixedWidthLoader class, for tests that need custom metrics.
	"""
	return FixedWidthLoader
