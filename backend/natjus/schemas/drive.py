"""NatJus Backend — Google Drive admin schemas."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel


class DriveFile(BaseModel):
    id: str
    name: str
    created_time: Optional[str] = None
    size: Optional[int] = None
    web_view_link: Optional[str] = None

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "DriveFile":
        """Build from a Drive v3 files resource (camelCase, size as a string)."""
        size = item.get("size")
        return cls(
            id=item["id"],
            name=item.get("name", ""),
            created_time=item.get("createdTime"),
            size=int(size) if size not in (None, "") else None,
            web_view_link=item.get("webViewLink"),
        )


class DriveFileListResponse(BaseModel):
    folder_id: str
    files: List[DriveFile]
