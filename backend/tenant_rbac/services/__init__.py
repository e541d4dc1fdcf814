from .expander import binding_name, expand, expand_many, validate
from .renderer import render_manifests, render_yaml, to_manifest
from .values_loader import load_values, load_values_file, parse_values

__all__ = [
    "binding_name",
    "expand",
    "expand_many",
    "validate",
    "render_manifests",
    "render_yaml",
    "to_manifest",
    "load_values",
    "load_values_file",
    "parse_values",
]
