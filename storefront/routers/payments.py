from fastapi import APIRouter, Depends

from storefront import schemas
from storefront.services.gateway import GatewayClient, get_gateway_client

router = APIRouter(prefix="/payments", tags=["payments"])


@router.get("/{payment_id}/status", response_model=schemas.PaymentStatusOut)
async def payment_status(payment_id: str, gateway: GatewayClient = Depends(get_gateway_client)):
    payment = await gateway.get_payment(payment_id)
    return schemas.PaymentStatusOut(
        payment_id=payment.id,
        status=payment.status,
        status_detail=payment.status_detail,
        external_reference=payment.external_reference,
        transaction_amount=payment.transaction_amount,
    )
