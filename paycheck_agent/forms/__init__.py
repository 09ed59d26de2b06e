"""
Fillable PDF forms.
"""

from .pdf_filler import ACCOUNT_TRANSFER_FIELDS, FormFillError, fill_pdf_form, validate_form_fields

__all__ = ["ACCOUNT_TRANSFER_FIELDS", "FormFillError", "fill_pdf_form", "validate_form_fields"]
