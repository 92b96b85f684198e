from typing import Optional, Union
from pydantic import BaseModel, Field, StrictFloat, StrictInt


class TransferIn(BaseModel):
    destination_account_number: str = Field(..., max_length=64)
    # strict numbers so JSON booleans are not coerced to 1.0
    amount: Union[StrictFloat, StrictInt, str] = Field(..., description="Amount in reais")
    description: Optional[str] = Field(None, max_length=500)
