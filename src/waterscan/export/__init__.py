"""Exports to Cloud Storage / Drive and direct downloads."""

from waterscan.export.tasks import ExportError, ExportTask, export_image, export_vectors

__all__ = ["ExportError", "ExportTask", "export_image", "export_vectors"]
