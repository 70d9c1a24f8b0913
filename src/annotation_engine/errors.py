"""Exceptions raised by the annotation engine."""


class AnnotationError(Exception):
    """Base class for annotation engine failures."""


class RenderError(AnnotationError):
    """A template failed to compile, evaluate, or produce a well-formed block."""
