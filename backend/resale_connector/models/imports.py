from pydantic import BaseModel
from typing import List


class ImportResponse(BaseModel):
    success: bool
    sales_created: int
    inventory_created: int
    deposits_created: int
    duplicates_skipped: int
    errors: List[str]
