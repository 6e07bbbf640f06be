"""
Excel export of detected subscriptions.
"""
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, List, Union

import pandas as pd

from core.exceptions import ExportError
from core.logger import setup_logger
from core.schema import DetectedSubscription

logger = setup_logger(__name__)

SHEET_NAME = "Abonnements"

# Column headers of the report, in display order
COLUMNS = {
    "icon": "Icône",
    "service_name": "Service",
    "monthly_cost": "Coût mensuel",
    "renewal_date": "Renouvellement",
    "confidence": "Confiance",
}

CONFIDENCE_LABELS = {
    "high": "Élevée",
    "medium": "Moyenne",
    "low": "Faible",
}


def subscriptions_to_dataframe(subscriptions: List[DetectedSubscription]) -> pd.DataFrame:
    """
    Build the report table.

    Args:
        subscriptions: Detected subscriptions, already ordered

    Returns:
        DataFrame with one row per subscription and French headers
    """
    rows = [
        {
            "icon": sub.icon,
            "service_name": sub.service_name,
            "monthly_cost": float(sub.monthly_cost),
            "renewal_date": sub.renewal_date.isoformat(),
            "confidence": CONFIDENCE_LABELS.get(sub.confidence, sub.confidence),
        }
        for sub in subscriptions
    ]
    df = pd.DataFrame(rows, columns=list(COLUMNS))
    return df.rename(columns=COLUMNS)


def export_to_excel(
    subscriptions: List[DetectedSubscription],
    output: Union[str, Path, BinaryIO],
    sheet_name: str = SHEET_NAME
) -> Union[str, Path, BinaryIO]:
    """
    Write detected subscriptions to an Excel workbook.

    Args:
        subscriptions: Detected subscriptions
        output: File path or writable binary buffer
        sheet_name: Worksheet name

    Returns:
        The output passed in

    Raises:
        ExportError: If the workbook cannot be written
    """
    df = subscriptions_to_dataframe(subscriptions)
    logger.info(f"Exporting {len(df)} subscriptions to Excel")

    if isinstance(output, (str, Path)):
        Path(output).parent.mkdir(parents=True, exist_ok=True)

    try:
        with pd.ExcelWriter(output, engine="xlsxwriter") as writer:
            df.to_excel(writer, sheet_name=sheet_name, index=False)

            workbook = writer.book
            worksheet = writer.sheets[sheet_name]

            money_format = workbook.add_format({"num_format": "#,##0.00 €"})
            cost_idx = df.columns.get_loc(COLUMNS["monthly_cost"])
            worksheet.set_column(cost_idx, cost_idx, 14, money_format)

            # Auto-fit remaining columns (approximate)
            for idx, col in enumerate(df.columns):
                if idx == cost_idx:
                    continue
                values = df[col].astype(str).map(len)
                max_len = max(values.max() if len(values) else 0, len(str(col)))
                worksheet.set_column(idx, idx, min(max_len + 2, 40))

            total_row = len(df) + 1
            bold = workbook.add_format({"bold": True, "num_format": "#,##0.00 €"})
            worksheet.write(total_row, cost_idx - 1, "Total", workbook.add_format({"bold": True}))
            worksheet.write_number(total_row, cost_idx, float(df[COLUMNS["monthly_cost"]].sum()), bold)

        return output

    except Exception as e:
        logger.error(f"Failed to export Excel: {e}")
        raise ExportError(
            "Failed to export subscriptions to Excel",
            details={"output": str(output), "error": str(e)}
        )


def export_to_bytes(subscriptions: List[DetectedSubscription]) -> bytes:
    """Render the Excel report in memory."""
    buffer = BytesIO()
    export_to_excel(subscriptions, buffer)
    return buffer.getvalue()
