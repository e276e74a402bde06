from pydantic import BaseModel


class CreateIntentRequest(BaseModel):
    bookingId: str


class GatewayPaymentData(BaseModel):
    # Field names are the ones the Razorpay checkout widget hands back.
    razorpay_payment_id: str
    razorpay_order_id: str
    razorpay_signature: str


class ConfirmPaymentRequest(BaseModel):
    bookingId: str
    orderId: str
    paymentData: GatewayPaymentData
