"""Tests d'export / Export tests."""

import io

from openpyxl import load_workbook

from autoconnect.models.added_vehicle import AddedVehicle, RequestPriority, RequestStatus, VehiclePurpose
from autoconnect.models.vehicle import Vehicle
from autoconnect.services.export_service import EXPORT_FIELDS, ExportService
from autoconnect.utils.clock import utcnow


def _row() -> dict:
    av = AddedVehicle(
        id=3,
        owner_nic="199012345678",
        purpose=VehiclePurpose.RENTAL,
        status=RequestStatus.PENDING,
        priority=RequestPriority.HIGH,
        notes="Needs a child seat; weekend only",
        location_city="Kandy",
        created_at=utcnow(),
    )
    av.vehicle = Vehicle(registration_number="CAB-1234", make="Toyota", model="Corolla")
    return ExportService.request_to_row(av)


def test_request_to_row_flattens_enums_and_vehicle():
    row = _row()
    assert set(row) == set(EXPORT_FIELDS)
    assert row["purpose"] == "RENTAL"
    assert row["registrationNumber"] == "CAB-1234"
    assert row["city"] == "Kandy"
    assert isinstance(row["createdAt"], str)


def test_csv_has_bom_and_semicolons():
    content = ExportService.to_csv([_row()])
    assert content.startswith("\ufeff".encode("utf-8"))
    lines = content.decode("utf-8-sig").splitlines()
    assert lines[0].split(";") == EXPORT_FIELDS
    # Le ';' des notes est protégé / The ';' inside notes is quoted
    assert '"Needs a child seat; weekend only"' in lines[1]


def test_xlsx_has_bold_headers():
    content = ExportService.to_xlsx([_row(), _row()])
    ws = load_workbook(io.BytesIO(content)).active
    assert ws.title == "Added vehicles"
    assert [cell.value for cell in ws[1]] == EXPORT_FIELDS
    assert ws["A1"].font.bold
    assert ws.max_row == 3
