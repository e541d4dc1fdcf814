"""Declarative tenant RBAC compiler: values in, Namespaces and bindings out."""

__version__ = "1.0.0"
