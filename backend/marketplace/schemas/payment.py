from pydantic import BaseModel


class PaymentIntentResponse(BaseModel):
    booking_id: str
    payment_intent_id: str
    client_secret: str
    # Minor units (cents)
    amount: int
    platform_fee: int
    provider_amount: int
    currency: str


class WebhookAck(BaseModel):
    received: bool = True
