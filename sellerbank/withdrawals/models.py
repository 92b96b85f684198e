from typing import Optional, Union
from pydantic import BaseModel, Field, StrictFloat, StrictInt


class WithdrawalIn(BaseModel):
    amount: Union[StrictFloat, StrictInt] = Field(..., description="Amount in reais")
    payment_method: str = Field(..., max_length=32)
    pix_key: Optional[str] = Field(None, max_length=255)
    pix_key_type: Optional[str] = Field(None, max_length=16)
    bank_name: Optional[str] = Field(None, max_length=128)
    bank_code: Optional[str] = Field(None, max_length=16)
    agencia: Optional[str] = Field(None, max_length=16)
    conta: Optional[str] = Field(None, max_length=32)
    conta_tipo: Optional[str] = Field(None, max_length=32)
    seller_note: Optional[str] = Field(None, max_length=500)


class AdminNoteIn(BaseModel):
    admin_note: Optional[str] = Field(None, max_length=1000)


class CompleteWithdrawalIn(AdminNoteIn):
    transaction_id: str = Field(..., min_length=1, max_length=128)


class RejectWithdrawalIn(AdminNoteIn):
    rejection_reason: str = Field(..., min_length=1, max_length=1000)
