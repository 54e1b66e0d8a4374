import io

import pypdf
import pypdf.generic

import document_pdf_converter as dpc
import document_pdf_converter.writer


DictionaryObject = pypdf.generic.DictionaryObject
NameObject = pypdf.generic.NameObject
NumberObject = pypdf.generic.NumberObject


#============================================
def test_build_stream_flate_round_trip() -> None:
	"""
	Compressed streams carry FlateDecode and decode back to the input.
	"""
	data = b"BT /F0 12 Tf (Hi) Tj ET\n" * 20
	stream = dpc.writer.build_stream(data, True, {"/Length1": NumberObject(len(data))})
	assert stream["/Filter"] == "/FlateDecode"
	assert stream["/Length1"] == len(data)
	assert stream.get_data() == data
	plain = dpc.writer.build_stream(data, False)
	assert "/Filter" not in plain
	assert plain.get_data() == data


#============================================
def test_streams_survive_serialization() -> None:
	"""
	Lengths are filled in on write, so a reader gets the exact bytes back.
	"""
	writer = dpc.writer.PdfObjectWriter()
	content = b"0 0 m 10 10 l S\n"
	refs = [
		writer.allocate(dpc.writer.build_stream(content, True)),
		writer.allocate(dpc.writer.build_stream(content, False)),
	]
	writer.add_page(100.0, 50.0, refs, DictionaryObject())
	writer.set_catalog_entry("/PageMode", NameObject("/UseOC"))
	assert writer.page_count == 1
	data = writer.to_bytes()
	assert data.startswith(b"%PDF-1.5")
	reader = pypdf.PdfReader(io.BytesIO(data))
	page = reader.pages[0]
	streams = [ref.get_object() for ref in page["/Contents"]]
	assert [stream.get_data() for stream in streams] == [content, content]
	assert reader.trailer["/Root"]["/PageMode"] == "/UseOC"
	assert float(page.mediabox.width) == 100.0
