from typing import Any, List, Optional
from pydantic import BaseModel

class ResponseModel(BaseModel):
    code: int = 200
    message: str = "success"
    data: Optional[Any] = None

    @staticmethod
    def success(data: Any = None):
        return {"code": 200, "message": "success", "data": data}

    @staticmethod
    def fail(code: int = 400, message: str = "error", data: Any = None):
        return {"code": code, "message": message, "data": data}

    @staticmethod
    def page(items: List[Any], total: int, page: int, page_size: int):
        """Envelope for one page of a paged listing."""
        return ResponseModel.success(
            data={"items": items, "total": total, "page": page, "page_size": page_size}
        )
