"""Task board core: workflow, authorization, attachments and filtering."""

__version__ = "0.1.0"
