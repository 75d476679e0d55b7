"""toolgate: policy-gated, structured execution of developer CLI tools."""

__version__ = "0.1.0"
