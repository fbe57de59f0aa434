"""
Bulk-upload manifest parsing.

A manifest is a CSV file with a header row followed by one row per file:
content identifier, then file name. The whole file is validated before
anything is returned, so a bad row never leads to a partial submission.
"""

import csv
import logging
from pathlib import Path
from typing import List, Union

from hipc.core.exceptions import ValidationError
from hipc.core.models import FileInput

logger = logging.getLogger(__name__)

MANIFEST_COLUMNS = 2


def parse_upload_csv(path: Union[str, Path]) -> List[FileInput]:
    """
    Read a bulk-upload manifest.

    Args:
        path: CSV file with a header row and (cid, name) rows

    Returns:
        FileInput per data row, in file order; empty if there are no data rows

    Raises:
        ValidationError: the file is missing or unreadable, or a non-blank row
            does not have exactly two non-empty columns
    """
    manifest = Path(path).expanduser()
    if not manifest.is_file():
        raise ValidationError(f"CSV file not found: {manifest}", details={"path": str(manifest)})

    files: List[FileInput] = []
    try:
        with manifest.open("r", encoding="utf-8", newline="") as handle:
            reader = csv.reader(handle)
            next(reader, None)
            for row in reader:
                if not row:
                    continue
                if len(row) != MANIFEST_COLUMNS:
                    raise ValidationError(
                        "CSV must have exactly two columns: file CID and file name",
                        details={"path": str(manifest), "line": reader.line_num, "columns": len(row)},
                    )
                cid, name = (cell.strip() for cell in row)
                if not cid or not name:
                    raise ValidationError(
                        f"Empty file CID or name on line {reader.line_num}",
                        details={"path": str(manifest), "line": reader.line_num},
                    )
                files.append(FileInput(file_hash=cid, file_name=name))
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise ValidationError(f"Unable to read CSV file {manifest}: {exc}") from exc

    logger.debug("Parsed upload manifest", extra={"event": "manifest.parsed", "files": len(files)})
    return files
