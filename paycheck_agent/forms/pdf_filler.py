"""
Account-transfer PDF form filling.

The template is a fillable (AcroForm) PDF whose field names match
ACCOUNT_TRANSFER_FIELDS. Values are written into every page and the
appearance streams are regenerated so viewers show the typed text.
"""

import io
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError

ACCOUNT_TRANSFER_FIELDS = [
    "receive_firm1",
    "primary_ssn1",
    "account_number1",
    "secondary_ssn1",
    "account_type1",
    "clearing_number2",
    "account_number2",
    "firm_name2",
    "account_title2",
    "contact_name2",
    "firm_address2",
    "city2",
    "state2",
    "telephone_number2",
    "zipcode2",
]


class FormFillError(Exception):
    """The PDF form could not be filled."""


def validate_form_fields(data: Mapping[str, Any]) -> Dict[str, str]:
    """Keep known fields with non-blank values, as strings."""
    if not isinstance(data, Mapping):
        raise FormFillError("Form data must be a JSON object")

    values = {}
    for name in ACCOUNT_TRANSFER_FIELDS:
        value = data.get(name)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            values[name] = text

    if not values:
        raise FormFillError("No form fields provided")
    return values


def fill_pdf_form(template_path: Union[str, Path], values: Mapping[str, str]) -> bytes:
    """
    Fill the template's fields and return the new PDF.

    Raises:
        FormFillError: Missing template, no form fields, or a pypdf failure
    """
    path = Path(template_path)
    if not path.is_file():
        raise FormFillError(f"PDF template not found: {path}")

    try:
        reader = PdfReader(str(path))
        if not reader.get_fields():
            raise FormFillError(f"PDF template has no form fields: {path.name}")

        writer = PdfWriter()
        writer.append(reader)
        for page in writer.pages:
            writer.update_page_form_field_values(page, dict(values), auto_regenerate=True)
        writer.set_need_appearances_writer(True)

        buffer = io.BytesIO()
        writer.write(buffer)
    except PyPdfError as e:
        raise FormFillError(f"Could not fill PDF form: {e}") from e

    print(f"  [Form] ✓ Filled {len(values)} fields in {path.name}")
    return buffer.getvalue()
