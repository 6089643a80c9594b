import io
from openpyxl import Workbook
from openpyxl.styles import Font, Alignment, PatternFill, Border, Side
from openpyxl.utils import get_column_letter

from carmarket.schemas.listing import Listing
from carmarket.services.currency import ExchangeRateTable

STATUS_LABELS = {
    "pending_approval": "Pending",
    "published": "Published",
    "sold": "Sold",
    "rejected": "Rejected",
}


def export_listings_to_excel(listings: list[Listing], rates: ExchangeRateTable, view: str = "all") -> io.BytesIO:
    """Generate an Excel file from a moderation view."""
    wb = Workbook()
    ws = wb.active
    ws.title = f"Listings ({view})"

    # Header style
    header_font = Font(bold=True, color="FFFFFF", size=11)
    header_fill = PatternFill(start_color="2C3E50", end_color="2C3E50", fill_type="solid")
    header_align = Alignment(horizontal="center", vertical="center")
    thin_border = Border(
        left=Side(style="thin"),
        right=Side(style="thin"),
        top=Side(style="thin"),
        bottom=Side(style="thin"),
    )

    headers = [
        "Created", "Brand", "Model", "Year", "Price", "Currency",
        "Price (STG)", "Status", "Seller", "Phone", "Location", "Images",
    ]

    for col, header in enumerate(headers, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_align
        cell.border = thin_border

    money_fmt = '#,##0'
    for row_idx, listing in enumerate(listings, 2):
        created = listing.created_at.replace(tzinfo=None) if listing.created_at else None
        ws.cell(row=row_idx, column=1, value=created)
        ws.cell(row=row_idx, column=2, value=listing.brand)
        ws.cell(row=row_idx, column=3, value=listing.model)
        ws.cell(row=row_idx, column=4, value=listing.year)

        ws.cell(row=row_idx, column=5, value=listing.price).number_format = money_fmt
        ws.cell(row=row_idx, column=6, value=listing.currency.value)
        base_cell = ws.cell(row=row_idx, column=7, value=round(rates.to_base(listing.price, listing.currency), 2))
        base_cell.number_format = money_fmt

        ws.cell(row=row_idx, column=8, value=STATUS_LABELS[listing.status.value])
        ws.cell(row=row_idx, column=9, value=listing.seller_name)
        ws.cell(row=row_idx, column=10, value=listing.seller_phone)
        ws.cell(row=row_idx, column=11, value=listing.location)
        ws.cell(row=row_idx, column=12, value=len(listing.images))

        # Alternate row shading
        if row_idx % 2 == 0:
            light_fill = PatternFill(start_color="F2F3F4", end_color="F2F3F4", fill_type="solid")
            for col in range(1, len(headers) + 1):
                ws.cell(row=row_idx, column=col).fill = light_fill

    col_widths = [18, 14, 22, 8, 12, 10, 13, 12, 20, 16, 16, 8]
    for i, width in enumerate(col_widths, 1):
        ws.column_dimensions[get_column_letter(i)].width = width

    ws.freeze_panes = "A2"
    ws.auto_filter.ref = f"A1:{get_column_letter(len(headers))}1"

    output = io.BytesIO()
    wb.save(output)
    output.seek(0)
    return output
