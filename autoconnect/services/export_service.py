"""
Service d'export CSV/Excel / CSV/Excel export service.
Génère des fichiers CSV et XLSX à partir des demandes exportées.
"""

import csv
import io
from datetime import datetime
from enum import Enum
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Font

from autoconnect.models.added_vehicle import AddedVehicle

# Colonnes exportées (ordre du fichier) / Exported columns (file order)
EXPORT_FIELDS = [
    "id",
    "registrationNumber",
    "make",
    "model",
    "ownerNIC",
    "purpose",
    "status",
    "priority",
    "scheduledDate",
    "serviceType",
    "estimatedCost",
    "contactPhone",
    "contactEmail",
    "city",
    "district",
    "notes",
    "createdAt",
]


def _cell(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat(timespec="seconds")
    if value is True:
        return "true"
    if value is False:
        return "false"
    return value


class ExportService:
    """Export de demandes vers CSV/XLSX / Request export to CSV/XLSX."""

    @staticmethod
    def request_to_row(av: AddedVehicle) -> dict[str, Any]:
        """Aplatir une demande / Flatten a request into an export row."""
        vehicle = av.vehicle
        row = {
            "id": av.id,
            "registrationNumber": vehicle.registration_number if vehicle else None,
            "make": vehicle.make if vehicle else None,
            "model": vehicle.model if vehicle else None,
            "ownerNIC": av.owner_nic,
            "purpose": av.purpose,
            "status": av.status,
            "priority": av.priority,
            "scheduledDate": av.scheduled_date,
            "serviceType": av.service_type,
            "estimatedCost": float(av.estimated_cost) if av.estimated_cost is not None else None,
            "contactPhone": av.contact_phone,
            "contactEmail": av.contact_email,
            "city": av.location_city,
            "district": av.location_district,
            "notes": av.notes,
            "createdAt": av.created_at,
        }
        return {key: _cell(value) for key, value in row.items()}

    @staticmethod
    def to_csv(rows: list[dict], fields: list[str] = EXPORT_FIELDS) -> bytes:
        """Générer un CSV UTF-8 BOM avec séparateur ';' / Generate UTF-8 BOM CSV with ';' separator."""
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=fields, delimiter=";", extrasaction="ignore")
        writer.writeheader()
        for row in rows:
            writer.writerow({f: row.get(f, "") for f in fields})
        return ("\ufeff" + output.getvalue()).encode("utf-8")

    @staticmethod
    def to_xlsx(rows: list[dict], fields: list[str] = EXPORT_FIELDS, sheet_name: str = "Added vehicles") -> bytes:
        """Générer un fichier Excel / Generate an Excel file."""
        wb = Workbook()
        ws = wb.active
        ws.title = sheet_name

        # En-têtes / Headers
        for col_idx, field in enumerate(fields, 1):
            cell = ws.cell(row=1, column=col_idx, value=field)
            cell.font = Font(bold=True)

        # Données / Data rows
        for row_idx, row in enumerate(rows, 2):
            for col_idx, field in enumerate(fields, 1):
                ws.cell(row=row_idx, column=col_idx, value=row.get(field))

        buf = io.BytesIO()
        wb.save(buf)
        return buf.getvalue()
