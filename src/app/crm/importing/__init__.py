"""Spreadsheet import and export -- parse, column mapping, row validation, xlsx writer."""
