"""ChatRelay: a multimodal chat gateway and terminal client."""

__version__ = "0.1.0"
