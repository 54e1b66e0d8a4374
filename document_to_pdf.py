#!/usr/bin/env python3
"""
Convert a JSON document description to PDF.
"""

# Standard Library
import sys

# local repo modules
import document_pdf_converter.cli


if __name__ == "__main__":
	sys.exit(document_pdf_converter.cli.main())
