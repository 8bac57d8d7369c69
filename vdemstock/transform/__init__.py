"""Panel preparation stages: expand, historical ids, normalise/fill, antecedents."""
