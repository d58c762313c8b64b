from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator

from backend.core import config
from backend.payments.gateway import RazorpayGateway, get_payment_gateway
from backend.scheduling.errors import PaymentGatewayError

router = APIRouter(tags=['payments'])


class CreateOrderRequest(BaseModel):
    amount_minor_units: int = config.CONSULTATION_FEE_MINOR_UNITS
    currency: str = config.CURRENCY

    @field_validator('amount_minor_units')
    @classmethod
    def validate_amount(cls, value: int) -> int:
        if value <= 0:
            raise ValueError('Amount must be a positive number of minor units.')
        return value

    @field_validator('currency')
    @classmethod
    def validate_currency(cls, value: str) -> str:
        normalized = value.strip().upper()
        if len(normalized) != 3:
            raise ValueError('Currency must be a three-letter code.')
        return normalized


class OrderResponse(BaseModel):
    order_id: str
    amount: int
    currency: str

    class Config:
        from_attributes = True


@router.post('/orders', response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(data: CreateOrderRequest, gateway: RazorpayGateway = Depends(get_payment_gateway)):
    try:
        return gateway.create_order(data.amount_minor_units, data.currency)
    except PaymentGatewayError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={'payment': [str(exc)]},
        ) from exc
