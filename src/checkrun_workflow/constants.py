"""Workflow constants shared across the SDK.

Several values can be overridden via environment variables so deployments can
adjust report presentation without code changes.
"""

import os

from checkrun_db.models.enums import Device

# Devices an instruction can target (the ck_instruction_device constraint)
DEVICES: tuple[str, ...] = tuple(d.value for d in Device)

# Timezone used for the clock times printed in the report narrative.
REPORT_TIMEZONE = os.getenv("REPORT_TIMEZONE", "Europe/Berlin")

# "zip" wraps the PDF in a deflated archive, "raw" sends the PDF as is.
PACKAGING_ZIP = "zip"
PACKAGING_RAW = "raw"
PACKAGING_MODES: tuple[str, ...] = (PACKAGING_ZIP, PACKAGING_RAW)

# Suffix of every report file name: "<tester>_test_report.pdf"
REPORT_FILE_SUFFIX = "_test_report"
