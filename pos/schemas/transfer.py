from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field


class ImportRequest(BaseModel):
    document: Dict[str, Any]
    conflict_resolution: Literal["update", "skip", "ask"] = "update"
    batch_size: int = Field(default=100, gt=0)
    dry_run: bool = False


class ExportFileRequest(BaseModel):
    export_dir: Optional[str] = None
    filename: Optional[str] = None
    data_type: str = "all"
