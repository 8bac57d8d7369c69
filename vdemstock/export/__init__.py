"""Output assembly and named persistence of results."""

from vdemstock.export.assemble import assemble_output, stock_columns, weight_label
